"""
Lumen — Color Correction Effects (CPU)
Brightness, contrast, saturation, hue rotation, gamma, invert, threshold.

Every function takes a (H, W, 3) uint8 RGB frame and returns a new
(H, W, 3) uint8 frame. The GPU programs in effects/shaders.py implement the
same formulas.
"""

import numpy as np

from effects.maps import hue_rotation_matrix, luma, mix_channels, to_uint8


def brightness(frame: np.ndarray, intensity: float = 0) -> np.ndarray:
    """Shift every channel by ``intensity * 2.55``.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: -100 (black) to 100 (white). 0 = no change.

    Returns:
        Brightness-adjusted frame.
    """
    return to_uint8(frame.astype(np.float32) + intensity * 2.55)


def contrast(frame: np.ndarray, intensity: float = 0) -> np.ndarray:
    """Scale channels around mid-gray (128).

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: -100 (flat) to 100 (extreme). 0 = no change.

    Returns:
        Contrast-adjusted frame. Mid-gray is a fixed point for every intensity.
    """
    factor = (259 * (intensity + 255)) / (255 * (259 - intensity))
    return to_uint8(factor * (frame.astype(np.float32) - 128.0) + 128.0)


def saturation(frame: np.ndarray, intensity: float = 0) -> np.ndarray:
    """Push channels away from (or towards) the pixel's luma.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: -100 (grayscale) to 100 (double saturation).

    Returns:
        Saturation-adjusted frame.
    """
    f = frame.astype(np.float32)
    gray = luma(f)[:, :, np.newaxis]
    amount = 1.0 + intensity / 100.0
    return to_uint8(gray + amount * (f - gray))


def hue_rotate(frame: np.ndarray, rotation: float = 0) -> np.ndarray:
    """Rotate the hue wheel by ``rotation`` degrees (0-360)."""
    if rotation % 360 == 0:
        return frame.copy()
    f = frame.astype(np.float32)
    return to_uint8(mix_channels(f, hue_rotation_matrix(rotation)))


def gamma_correct(frame: np.ndarray, gamma: float = 1.0) -> np.ndarray:
    """Gamma correction: ``255 * (in/255) ** (1/gamma)``.

    gamma > 1 lifts midtones, gamma < 1 darkens them. Black and white are fixed.
    """
    f = frame.astype(np.float32) / 255.0
    return to_uint8(np.power(f, 1.0 / gamma) * 255.0)


def invert(frame: np.ndarray, intensity: float = 100) -> np.ndarray:
    """Blend towards the negative image. 100 = full inversion, 50 = flat gray."""
    f = frame.astype(np.float32)
    amount = intensity / 100.0
    return to_uint8(f + (255.0 - 2.0 * f) * amount)


def threshold_filter(frame: np.ndarray, threshold: float = 128) -> np.ndarray:
    """Binary black/white split on luma. Pixels with luma >= threshold go white."""
    gray = luma(frame.astype(np.float32))
    mask = np.where(gray >= threshold, 255, 0).astype(np.uint8)
    return np.repeat(mask[:, :, np.newaxis], 3, axis=2)
