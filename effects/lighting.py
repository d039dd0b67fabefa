"""
Lumen — Lighting Effects (CPU)
Vignette, glow, drop shadow.
"""

import numpy as np

from effects.distortion import gaussian_blur_f32
from effects.maps import luma, shift_axes, take, to_uint8, vignette_mask


def vignette(frame: np.ndarray, intensity: float = 50, size: float = 50) -> np.ndarray:
    """Darken the frame towards its corners.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: 0 (off) to 100 (corners fully black).
        size: Radius of the lit area in percent of the frame diagonal half.

    Returns:
        Vignetted frame.
    """
    h, w = frame.shape[:2]
    mask = vignette_mask(h, w, float(intensity), float(size))
    return to_uint8(frame.astype(np.float32) * mask[:, :, np.newaxis])


def glow(frame: np.ndarray, intensity: float = 30, radius: float = 5) -> np.ndarray:
    """Screen-blend a blurred copy over the frame so highlights bloom."""
    f = frame.astype(np.float32)
    halo = gaussian_blur_f32(f, radius)
    amount = intensity / 100.0
    return to_uint8(255.0 - (255.0 - f) * (255.0 - halo * amount) / 255.0)


def drop_shadow(frame: np.ndarray, offset_x: int = 5, offset_y: int = 5,
                blur: float = 5, opacity: float = 50) -> np.ndarray:
    """Darken the frame under an offset, softened copy of its own dark areas.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        offset_x, offset_y: Shadow offset in pixels (-20 to 20).
        blur: Shadow softness (Gaussian sigma, 0-20).
        opacity: 0-100.
    """
    h, w = frame.shape[:2]
    f = frame.astype(np.float32)
    caster = take(luma(f), shift_axes(h, w, -int(offset_y), -int(offset_x)))
    caster = gaussian_blur_f32(caster, blur)
    amount = opacity / 100.0
    shade = 1.0 - amount * (1.0 - caster / 255.0)
    return to_uint8(f * shade[:, :, np.newaxis])
