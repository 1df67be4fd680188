#!/usr/bin/env python3
"""
Image gradient pipeline.

Derives a two-stop CSS gradient from an image's dominant palette and mood.
Three stages: Histogram → Ranking & Classification → Synthesis, plus
prose/HTML rendering and a CLI.
"""

import math
from dataclasses import dataclass
from typing import Optional

from extract_colors import (
    ALPHA_THRESHOLD, BUCKET_SIZE, SAMPLE_STEP,
    build_histogram, load_pixels,
)


# =============================================================================
# Constants
# =============================================================================

ACCENT_RANK = 3  # Accent is the 4th most frequent bucket
VIBRANCY_WINDOW = 5  # Top colors checked for saturation
VIBRANCY_SATURATION = 30  # Saturation (%) that counts as vibrant
MOODY_SATURATION = 20  # Dominant saturation (%) below this is desaturated
MOODY_BRIGHTNESS = 60  # Dominant brightness (%) below this is dark
SHADE_FACTOR = 0.3  # Darken/lighten amount for the gradient stops

EMPTY_START = '#000000'
EMPTY_END = '#444444'
MOODY_START = '#000000'
MOODY_END = '#666666'

CSS_ANGLE = 135  # Degrees for the linear-gradient snippet
MAX_REPORT_COLORS = 8  # Ranked colors listed in reports
LIGHT_BACKGROUND_BRIGHTNESS = 60  # Swatches brighter than this (%) get black labels


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class GradientSettings:
    """Tunable parameters. Defaults reproduce the reference gradients."""
    sample_step: int = SAMPLE_STEP
    bucket_size: int = BUCKET_SIZE
    alpha_threshold: int = ALPHA_THRESHOLD
    accent_rank: int = ACCENT_RANK
    vibrancy_window: int = VIBRANCY_WINDOW
    vibrancy_saturation: float = VIBRANCY_SATURATION
    moody_saturation: float = MOODY_SATURATION
    moody_brightness: float = MOODY_BRIGHTNESS
    shade_factor: float = SHADE_FACTOR

    def __post_init__(self):
        if self.sample_step < 1:
            raise ValueError(f"sample_step must be >= 1, got {self.sample_step}")
        if not 1 <= self.bucket_size <= 256:
            raise ValueError(f"bucket_size must be in 1-256, got {self.bucket_size}")
        if not 0 <= self.alpha_threshold <= 256:
            raise ValueError(f"alpha_threshold must be in 0-256, got {self.alpha_threshold}")
        if self.accent_rank < 0:
            raise ValueError(f"accent_rank must be >= 0, got {self.accent_rank}")
        if self.vibrancy_window < 1:
            raise ValueError(f"vibrancy_window must be >= 1, got {self.vibrancy_window}")
        if not 0 <= self.shade_factor <= 1:
            raise ValueError(f"shade_factor must be in 0-1, got {self.shade_factor}")


DEFAULT_SETTINGS = GradientSettings()


# =============================================================================
# Color Values
# =============================================================================

@dataclass(frozen=True)
class Color:
    """An RGB color, channels 0-255."""
    r: int
    g: int
    b: int

    def as_tuple(self) -> tuple:
        return (self.r, self.g, self.b)


@dataclass(frozen=True)
class Gradient:
    """Two CSS color literals: the only output of the pipeline."""
    start_color: str
    end_color: str

    def to_dict(self) -> dict:
        return {'startColor': self.start_color, 'endColor': self.end_color}


EMPTY_GRADIENT = Gradient(EMPTY_START, EMPTY_END)
MOODY_GRADIENT = Gradient(MOODY_START, MOODY_END)


def to_hex(color: Color) -> str:
    """Format as lowercase #rrggbb."""
    return f"#{color.r:02x}{color.g:02x}{color.b:02x}"


def to_rgb_string(color: Color) -> str:
    """Format as rgb(r, g, b)."""
    return f"rgb({color.r}, {color.g}, {color.b})"


def saturation(color: Color) -> float:
    """Saturation percentage (0-100): channel spread relative to the max channel."""
    hi = max(color.r, color.g, color.b)
    lo = min(color.r, color.g, color.b)
    if hi == 0:
        return 0.0
    return (hi - lo) / hi * 100


def brightness(color: Color) -> float:
    """
    Brightness percentage (0-100) of the strongest channel.

    Uses the max channel, not weighted luminance.
    """
    return max(color.r, color.g, color.b) / 255 * 100


def darken(color: Color, factor: float = SHADE_FACTOR) -> Color:
    return Color(
        math.floor(color.r * (1 - factor)),
        math.floor(color.g * (1 - factor)),
        math.floor(color.b * (1 - factor)),
    )


def lighten(color: Color, factor: float = SHADE_FACTOR) -> Color:
    return Color(
        min(255, math.floor(color.r * (1 + factor))),
        min(255, math.floor(color.g * (1 + factor))),
        min(255, math.floor(color.b * (1 + factor))),
    )


# =============================================================================
# Stage 2: Ranking & Classification
# =============================================================================

@dataclass
class Classification:
    """Output of Stage 2."""
    dominant: Color
    accent: Color
    is_moody: bool
    dominant_saturation: float
    dominant_brightness: float
    has_vibrancy: bool


def rank_palette(histogram: dict) -> list:
    """
    Order histogram buckets by count, most frequent first.

    sorted() is stable and the histogram iterates in first-seen order, so
    buckets with equal counts rank in the order they were first sampled.
    """
    ranked = sorted(histogram.items(), key=lambda item: item[1], reverse=True)
    return [Color(*bucket) for bucket, _ in ranked]


def classify(palette: list, settings: GradientSettings = DEFAULT_SETTINGS) -> Classification:
    """
    Pick dominant/accent colors and decide whether the image is moody.

    Moody requires a desaturated, dark dominant color AND no vibrant color
    among the top vibrancy_window ranks.

    Raises:
        ValueError: If palette is empty
    """
    if not palette:
        raise ValueError("Cannot classify an empty palette")

    dominant = palette[0]
    accent = palette[min(settings.accent_rank, len(palette) - 1)]

    dominant_saturation = saturation(dominant)
    dominant_brightness = brightness(dominant)
    has_vibrancy = any(
        saturation(color) > settings.vibrancy_saturation
        for color in palette[:settings.vibrancy_window]
    )

    is_moody = (
        dominant_saturation < settings.moody_saturation
        and dominant_brightness < settings.moody_brightness
        and not has_vibrancy
    )

    return Classification(
        dominant=dominant,
        accent=accent,
        is_moody=is_moody,
        dominant_saturation=dominant_saturation,
        dominant_brightness=dominant_brightness,
        has_vibrancy=has_vibrancy,
    )


def rank_and_classify(histogram: dict, settings: GradientSettings = DEFAULT_SETTINGS
                      ) -> tuple[list, Optional[Classification]]:
    """Stage 2. An empty histogram yields ([], None) without classifying."""
    if not histogram:
        return [], None
    palette = rank_palette(histogram)
    return palette, classify(palette, settings)


# =============================================================================
# Stage 3: Synthesis
# =============================================================================

def synthesize(classification: Classification, settings: GradientSettings = DEFAULT_SETTINGS) -> Gradient:
    """Stage 3: fixed neutral pair for moody images, shaded dominant → accent otherwise."""
    if classification.is_moody:
        return MOODY_GRADIENT

    start = darken(classification.dominant, settings.shade_factor)
    end = lighten(classification.accent, settings.shade_factor)
    return Gradient(to_rgb_string(start), to_rgb_string(end))


def resolve_gradient(classification: Optional[Classification],
                     settings: GradientSettings = DEFAULT_SETTINGS) -> Gradient:
    """Stage 3, falling back to the no-data default when nothing was classified."""
    if classification is None:
        return EMPTY_GRADIENT
    return synthesize(classification, settings)


def gradient_css(gradient: Gradient, angle: int = CSS_ANGLE) -> str:
    """CSS declaration for the gradient."""
    return f"background: linear-gradient({angle}deg, {gradient.start_color}, {gradient.end_color});"


# =============================================================================
# Main Pipeline
# =============================================================================

@dataclass
class AnalysisResult:
    """Everything the stages produced, for rendering."""
    gradient: Gradient
    histogram: dict
    palette: list
    classification: Optional[Classification] = None

    @property
    def sampled_pixels(self) -> int:
        return sum(self.histogram.values())

    @property
    def mood(self) -> str:
        if self.classification is None:
            return 'empty'
        return 'moody' if self.classification.is_moody else 'vibrant'


def run_pipeline(pixels, settings: Optional[GradientSettings] = None) -> AnalysisResult:
    """Run stages 1-3 on a flat RGBA buffer."""
    settings = settings or DEFAULT_SETTINGS

    # Stage 1: Histogram
    histogram = build_histogram(
        pixels,
        step=settings.sample_step,
        bucket_size=settings.bucket_size,
        alpha_threshold=settings.alpha_threshold,
    )

    # Stage 2: Ranking & Classification
    palette, classification = rank_and_classify(histogram, settings)

    # Stage 3: Synthesis
    gradient = resolve_gradient(classification, settings)

    return AnalysisResult(
        gradient=gradient,
        histogram=histogram,
        palette=palette,
        classification=classification,
    )


def derive_gradient(pixels, settings: Optional[GradientSettings] = None) -> Gradient:
    """Derive the two-stop gradient for a flat RGBA buffer."""
    return run_pipeline(pixels, settings).gradient


# =============================================================================
# Render
# =============================================================================

def describe_color(color: Color) -> str:
    return (f"{to_hex(color)} / {to_rgb_string(color)} | "
            f"Saturation: {saturation(color):.0f}% | Brightness: {brightness(color):.0f}%")


def render(result: AnalysisResult) -> str:
    """Render the analysis as prose."""
    lines = []

    lines.append(f"MOOD: {result.mood}")
    lines.append(f"Gradient: {result.gradient.start_color} → {result.gradient.end_color}")
    lines.append(f"CSS: {gradient_css(result.gradient)}")
    lines.append("")

    if result.classification is None:
        lines.append("No opaque pixels sampled; using the default gradient.")
        return "\n".join(lines)

    c = result.classification
    lines.append(f"Dominant: {describe_color(c.dominant)}")
    lines.append(f"Accent: {describe_color(c.accent)}")
    lines.append(f"Vibrant color in top ranks: {'yes' if c.has_vibrancy else 'no'}")
    lines.append("")

    lines.append(f"PALETTE ({len(result.palette)} buckets, {result.sampled_pixels:,} sampled pixels):")
    total = result.sampled_pixels
    for i, color in enumerate(result.palette[:MAX_REPORT_COLORS]):
        coverage = result.histogram[color.as_tuple()] / total * 100
        lines.append(f"  {i + 1}. {to_hex(color)} {to_rgb_string(color)} {coverage:.1f}%")

    return "\n".join(lines)


def text_color_for_background(color: Color) -> str:
    """Return black or white text color based on background brightness."""
    return "#000" if brightness(color) > LIGHT_BACKGROUND_BRIGHTNESS else "#fff"


def render_html(result: AnalysisResult, image_path: str) -> str:
    """Render the analysis as a standalone HTML page."""
    from html import escape

    safe_path = escape(image_path)
    gradient = result.gradient
    background = f"linear-gradient({CSS_ANGLE}deg, {gradient.start_color}, {gradient.end_color})"

    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #f5f5f5;
            color: #333;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        h2 { font-size: 1.2rem; margin: 2rem 0 1rem; border-bottom: 1px solid #ddd; padding-bottom: 0.5rem; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 1rem; }
        .gradient-preview {
            height: 240px;
            border-radius: 8px;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            margin: 1.5rem 0;
        }
        .stop {
            display: flex;
            align-items: center;
            gap: 0.75rem;
            margin-bottom: 0.5rem;
            font-family: monospace;
            font-size: 0.9rem;
        }
        .stop .swatch {
            width: 32px;
            height: 32px;
            border-radius: 4px;
            border: 1px solid #ddd;
        }
        .css-code {
            background: #eee;
            border-radius: 6px;
            padding: 0.75rem;
            font-family: monospace;
            font-size: 0.85rem;
        }
        .palette-strip {
            display: flex;
            height: 80px;
            border-radius: 8px;
            overflow: hidden;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            margin: 1.5rem 0;
        }
        .palette-strip .swatch {
            display: flex;
            align-items: flex-end;
            justify-content: center;
            padding: 0.5rem;
            font-size: 0.7rem;
            font-weight: 500;
        }
        .metrics { font-size: 0.85rem; color: #555; font-family: monospace; }
    """

    lines = [
        '<!DOCTYPE html>',
        '<html lang="en">',
        '<head>',
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f'  <title>Gradient: {safe_path}</title>',
        f'  <style>{css}</style>',
        '</head>',
        '<body>',
    ]

    lines.append(f'<h1>{result.mood.capitalize()} gradient</h1>')
    lines.append(f'<p class="meta">Source: {safe_path}</p>')
    lines.append(f'<div class="gradient-preview" style="background:{background}"></div>')

    for label, value in (('Start', gradient.start_color), ('End', gradient.end_color)):
        lines.append(f'<div class="stop"><div class="swatch" style="background:{value}"></div>'
                     f'{label}: {value}</div>')

    lines.append('<h2>CSS</h2>')
    lines.append(f'<div class="css-code">{escape(gradient_css(gradient))}</div>')

    if result.classification is not None:
        c = result.classification
        lines.append('<h2>Palette</h2>')
        lines.append(f'<p class="metrics">Dominant {to_hex(c.dominant)}: saturation {c.dominant_saturation:.0f}%, '
                     f'brightness {c.dominant_brightness:.0f}% · Accent {to_hex(c.accent)} · '
                     f'Vibrant: {"yes" if c.has_vibrancy else "no"}</p>')

        lines.append('<div class="palette-strip">')
        shown = result.palette[:MAX_REPORT_COLORS]
        shown_total = sum(result.histogram[color.as_tuple()] for color in shown) or 1
        for color in shown:
            width_pct = max(5, result.histogram[color.as_tuple()] / shown_total * 100)  # min 5% for visibility
            hex_val = to_hex(color)
            text_color = text_color_for_background(color)
            lines.append(f'  <div class="swatch" style="background:{hex_val}; color:{text_color}; '
                         f'flex:{width_pct:.1f}">{hex_val}</div>')
        lines.append('</div>')
    else:
        lines.append('<p class="meta">No opaque pixels sampled; using the default gradient.</p>')

    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


def analyze_image(image_path: str, settings: Optional[GradientSettings] = None) -> tuple[str, str]:
    """Run the full pipeline on an image file.

    Returns:
        Tuple of (prose_output, html_output)
    """
    pixels, _ = load_pixels(image_path)
    result = run_pipeline(pixels, settings)
    return render(result), render_html(result, image_path)


# =============================================================================
# CLI
# =============================================================================

def main(argv=None):
    import argparse
    import sys
    from pathlib import Path

    from extract_colors import visualize_gradient

    parser = argparse.ArgumentParser(
        description='Derive a two-stop CSS gradient from an image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write HTML report. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--preview',
        default=None,
        help='Write a PNG preview of the gradient and palette to this path'
    )
    parser.add_argument(
        '--css',
        action='store_true',
        help='Print only the CSS declaration'
    )
    parser.add_argument(
        '--step',
        type=int,
        default=SAMPLE_STEP,
        help=f'Sample every Nth pixel (default {SAMPLE_STEP})'
    )
    parser.add_argument(
        '--bucket-size',
        type=int,
        default=BUCKET_SIZE,
        help=f'Quantization bucket per channel (default {BUCKET_SIZE})'
    )

    args = parser.parse_args(argv)
    image_path = Path(args.input)

    try:
        settings = GradientSettings(sample_step=args.step, bucket_size=args.bucket_size)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        pixels, _ = load_pixels(str(image_path))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = run_pipeline(pixels, settings)

    if args.css:
        print(gradient_css(result.gradient))
    else:
        print(render(result))

    try:
        if args.output:
            if args.output is True:
                output_path = image_path.with_name(f"{image_path.stem}-gradient.html")
            else:
                output_path = Path(args.output)
            output_path.write_text(render_html(result, str(image_path)))
            print(f"\nWrote: {output_path}")

        if args.preview:
            visualize_gradient(result.gradient, result.histogram, args.preview)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
