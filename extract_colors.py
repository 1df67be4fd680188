#!/usr/bin/env python3
"""
Load images as flat RGBA buffers and count quantized colors.
"""

import numpy as np
from PIL import Image, ImageColor, ImageDraw


SAMPLE_STEP = 4  # Examine every 4th pixel
BUCKET_SIZE = 32  # 8 buckets per channel, 512 colors
ALPHA_THRESHOLD = 128  # Pixels below this alpha are background

# Image size limits (prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

HISTOGRAM_CHUNK = 1 << 16  # Sampled pixels quantized per pass


def load_pixels(image_path: str) -> tuple[np.ndarray, tuple[int, int]]:
    """
    Decode an image file into a flat RGBA buffer.

    Returns:
        (pixels, (height, width)) where pixels is a uint8 array of
        length height * width * 4, row-major.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise ValueError(f"Could not open image: {e}")

    with img:
        width, height = img.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise ValueError(
                f"Image dimensions {width}x{height} exceed maximum "
                f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
            )
        if width * height > MAX_IMAGE_PIXELS:
            raise ValueError(
                f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
            )

        pixels = np.array(img.convert('RGBA'))

    h, w = pixels.shape[:2]
    return pixels.reshape(-1), (h, w)


def as_rgba_rows(pixels, step: int = 1) -> np.ndarray:
    """
    View a flat RGBA buffer as (n, 4) rows, keeping every step-th pixel.

    A trailing partial pixel is dropped. Contiguous numpy and bytes-like
    input is not copied; the dtype is left as given.
    """
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(pixels, dtype=np.uint8)
    else:
        flat = np.asarray(pixels).reshape(-1)

    usable = len(flat) - len(flat) % 4
    return flat[:usable].reshape(-1, 4)[::step]


def quantize(rgb: np.ndarray, bucket_size: int = BUCKET_SIZE) -> np.ndarray:
    """Floor each channel to a multiple of bucket_size."""
    return (np.asarray(rgb) // bucket_size) * bucket_size


def build_histogram(pixels, step: int = SAMPLE_STEP, bucket_size: int = BUCKET_SIZE,
                    alpha_threshold: int = ALPHA_THRESHOLD) -> dict:
    """
    Count quantized colors over a uniform subsample of an RGBA buffer.

    Args:
        pixels: Flat RGBA sequence (numpy array, list of ints or bytes)
        step: Sample every step-th pixel, starting at the first
        bucket_size: Quantization bucket per channel
        alpha_threshold: Samples with alpha below this are skipped

    Returns:
        dict mapping (r, g, b) bucket -> sample count, in the order each
        bucket was first seen. Empty when no sampled pixel is opaque.
    """
    samples = as_rgba_rows(pixels, step)
    histogram = {}

    # Quantize a bounded number of samples at a time
    for begin in range(0, len(samples), HISTOGRAM_CHUNK):
        chunk = samples[begin:begin + HISTOGRAM_CHUNK]
        opaque = chunk[chunk[:, 3] >= alpha_threshold]
        if len(opaque) == 0:
            continue

        buckets = quantize(opaque[:, :3].astype(np.int32), bucket_size)
        unique, first_seen, counts = np.unique(
            buckets, axis=0, return_index=True, return_counts=True
        )

        # np.unique sorts lexicographically; restore stream order
        for i in np.argsort(first_seen, kind='stable'):
            key = tuple(int(c) for c in unique[i])
            histogram[key] = histogram.get(key, 0) + int(counts[i])

    return histogram


def visualize_gradient(gradient, histogram: dict, output_path: str, max_swatches: int = 6) -> None:
    """
    Save a preview image: the gradient as a horizontal bar above swatches of
    the most frequent buckets with their sampled percentages.

    Args:
        gradient: Object with start_color / end_color CSS color strings
        histogram: Output of build_histogram()
        output_path: Path to save the PNG
    """
    swatch_size = 80
    padding = 10
    text_height = 25
    bar_height = 60

    ranked = sorted(histogram.items(), key=lambda item: item[1], reverse=True)[:max_swatches]
    total_samples = sum(histogram.values())
    cols = max(len(ranked), 1)

    img_width = cols * (swatch_size + padding) + padding
    img_height = bar_height + 2 * padding
    if ranked:
        img_height += swatch_size + text_height + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    # Gradient bar, interpolated column by column
    start = np.array(ImageColor.getrgb(gradient.start_color)[:3], dtype=np.float64)
    end = np.array(ImageColor.getrgb(gradient.end_color)[:3], dtype=np.float64)
    bar_width = img_width - 2 * padding
    for x in range(bar_width):
        t = x / max(1, bar_width - 1)
        rgb = tuple(int(c) for c in np.round(start + (end - start) * t))
        draw.line([(padding + x, padding), (padding + x, padding + bar_height)], fill=rgb)

    for i, (bucket, count) in enumerate(ranked):
        x = padding + i * (swatch_size + padding)
        y = bar_height + 2 * padding

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=bucket)

        text = f"{count / total_samples * 100:.1f}%"
        bbox = draw.textbbox((0, 0), text)
        text_width = bbox[2] - bbox[0]
        text_x = x + (swatch_size - text_width) // 2
        draw.text((text_x, y + swatch_size + 4), text, fill=(0, 0, 0))

    img.save(output_path)
    print(f"Saved preview to {output_path}")
