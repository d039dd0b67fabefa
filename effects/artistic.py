"""
Lumen — Artistic Effects (CPU)
Sepia, grayscale, vintage film, posterize, edge detection.
"""

import numpy as np

from effects.maps import (
    SEPIA_MATRIX,
    VINTAGE_VIGNETTE_SIZE,
    luma,
    mix_channels,
    to_uint8,
    vignette_mask,
)


def _sepia_mix(f: np.ndarray, intensity: float) -> np.ndarray:
    amount = intensity / 100.0
    toned = mix_channels(f, SEPIA_MATRIX)
    return f + (toned - f) * amount


def sepia(frame: np.ndarray, intensity: float = 50) -> np.ndarray:
    """Warm brown tone.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: 0 (original) to 100 (full sepia matrix).

    Returns:
        Toned frame.
    """
    return to_uint8(_sepia_mix(frame.astype(np.float32), intensity))


def grayscale(frame: np.ndarray, intensity: float = 100) -> np.ndarray:
    """Blend towards Rec.601 luma. 100 = fully monochrome."""
    f = frame.astype(np.float32)
    gray = luma(f)[:, :, np.newaxis]
    amount = intensity / 100.0
    return to_uint8(f + (gray - f) * amount)


def vintage(frame: np.ndarray, intensity: float = 50, vignette: float = 30) -> np.ndarray:
    """Old film look: sepia toning plus a darkened border.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: Sepia amount, 0-100.
        vignette: Border darkening, 0-100.
    """
    h, w = frame.shape[:2]
    toned = _sepia_mix(frame.astype(np.float32), intensity)
    mask = vignette_mask(h, w, float(vignette), VINTAGE_VIGNETTE_SIZE)
    return to_uint8(toned * mask[:, :, np.newaxis])


def posterize(frame: np.ndarray, levels: int = 8) -> np.ndarray:
    """Reduce each channel to ``levels`` evenly spaced values (2-16)."""
    steps = float(max(2, int(levels)) - 1)
    f = frame.astype(np.float32)
    bands = np.rint(f / 255.0 * steps)
    return to_uint8(bands * (255.0 / steps))


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of a (H, W) float32 image, edges replicated."""
    p = np.pad(gray, 1, mode="edge")
    gx = (p[:-2, 2:] + 2.0 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2.0 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[:-2, 1:-1] + p[:-2, 2:])
    return np.sqrt(gx * gx + gy * gy)


def edge_detect(frame: np.ndarray, threshold: float = 50, invert: bool = False) -> np.ndarray:
    """White edges on black (or black on white when ``invert``).

    Args:
        frame: (H, W, 3) uint8 RGB array.
        threshold: 0-100. Gradient magnitude must exceed ``threshold * 2.55``.
        invert: Swap edge/background colours.

    Returns:
        Binary edge map as a 3-channel frame.
    """
    mag = sobel_magnitude(luma(frame.astype(np.float32)))
    edges = mag > threshold * 2.55
    if invert:
        edges = ~edges
    mask = np.where(edges, 255, 0).astype(np.uint8)
    return np.repeat(mask[:, :, np.newaxis], 3, axis=2)
