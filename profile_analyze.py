#!/usr/bin/env python3
"""Profile analyze.py to identify performance bottlenecks."""

import cProfile
import pstats
import io
import sys
import time
from pathlib import Path

from extract_colors import load_pixels, build_histogram
from analyze import (
    DEFAULT_SETTINGS, AnalysisResult,
    rank_and_classify, resolve_gradient, render,
)


def profile_image(image_path: str, verbose: bool = True):
    """Profile a single image through the full pipeline."""

    if verbose:
        print(f"\n{'='*60}")
        print(f"Profiling: {Path(image_path).name}")
        print(f"{'='*60}")

    settings = DEFAULT_SETTINGS
    timings = {}

    # Load
    start = time.perf_counter()
    pixels, (h, w) = load_pixels(image_path)
    timings['load_pixels'] = time.perf_counter() - start

    # Stage 1: Histogram
    start = time.perf_counter()
    histogram = build_histogram(pixels, step=settings.sample_step,
                                bucket_size=settings.bucket_size,
                                alpha_threshold=settings.alpha_threshold)
    timings['build_histogram'] = time.perf_counter() - start

    if verbose:
        print(f"  Image: {w}x{h} ({w * h:,} pixels)")
        print(f"  Sampled pixels: {sum(histogram.values()):,}")
        print(f"  Buckets: {len(histogram):,}")

    # Stage 2: Ranking & Classification
    start = time.perf_counter()
    palette, classification = rank_and_classify(histogram, settings)
    timings['rank_classify'] = time.perf_counter() - start

    # Stage 3: Synthesis
    start = time.perf_counter()
    gradient = resolve_gradient(classification, settings)
    timings['synthesize'] = time.perf_counter() - start

    # Render
    start = time.perf_counter()
    render(AnalysisResult(gradient, histogram, palette, classification))
    timings['render'] = time.perf_counter() - start

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' and total else 100
            print(f"  {stage:20s}: {t:6.3f}s ({pct:5.1f}%)")

    return timings, histogram


def detailed_profile(image_path: str):
    """Run detailed cProfile on build_histogram (the only per-pixel stage)."""

    print(f"\n{'='*60}")
    print(f"Detailed profile of build_histogram()")
    print(f"{'='*60}")

    pixels, _ = load_pixels(image_path)

    profiler = cProfile.Profile()
    profiler.enable()
    histogram = build_histogram(pixels)
    profiler.disable()

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats('cumulative')
    stats.print_stats(30)  # Top 30 functions

    print(stream.getvalue())

    return histogram


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp', '.gif'}
    return sorted(p for p in directory.iterdir() if p.suffix.lower() in extensions)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    images_dir = Path(argv[0]) if argv else Path(__file__).parent / "source_images"

    if not images_dir.is_dir():
        print(f"Directory not found: {images_dir}", file=sys.stderr)
        return 1

    images = find_images(images_dir)
    if not images:
        print(f"No images found in {images_dir}", file=sys.stderr)
        return 1

    print(f"Found {len(images)} test images")

    all_timings = []
    for img in images:
        timings, histogram = profile_image(str(img))
        all_timings.append((img.name, timings, len(histogram)))

    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    print(f"{'Image':<35} {'Buckets':>8} {'Total':>8}")
    print("-" * 60)
    for name, timings, buckets in all_timings:
        print(f"{name:<35} {buckets:>8,} {timings['total']:>7.3f}s")

    detailed_profile(str(images[0]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
