"""
Lumen — Distortion Effects (CPU)
Gaussian blur, sharpen, pixelate, fisheye, barrel distortion.
"""

import cv2
import numpy as np

from effects.maps import (
    barrel_map,
    fisheye_map,
    gaussian_kernel,
    pixelate_axes,
    sharpen_kernel,
    take,
    to_uint8,
)


def gaussian_blur_f32(f: np.ndarray, sigma: float) -> np.ndarray:
    """Separable Gaussian blur on a float32 buffer (any channel count), replicate borders."""
    k = gaussian_kernel(float(sigma))
    if k is None:
        return f
    out = cv2.sepFilter2D(f, cv2.CV_32F, k, k, borderType=cv2.BORDER_REPLICATE)
    # cv2 drops the trailing axis for single-channel input
    return out.reshape(f.shape)


def blur(frame: np.ndarray, radius: float = 5) -> np.ndarray:
    """Gaussian blur.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        radius: Gaussian sigma in pixels (0-20). 0 = no change.

    Returns:
        Blurred frame.
    """
    if radius <= 0:
        return frame.copy()
    return to_uint8(gaussian_blur_f32(frame.astype(np.float32), radius))


def sharpen(frame: np.ndarray, intensity: float = 50) -> np.ndarray:
    """3x3 unsharp mask. 0 = no change, 100 = full Laplacian boost."""
    k = sharpen_kernel(intensity)
    f = frame.astype(np.float32)
    return to_uint8(cv2.filter2D(f, cv2.CV_32F, k, borderType=cv2.BORDER_REPLICATE))


def _remap(frame, maps):
    map_x, map_y = maps
    return cv2.remap(frame, map_x, map_y, cv2.INTER_NEAREST, borderMode=cv2.BORDER_REPLICATE)


def pixelate(frame: np.ndarray, pixel_size: int = 10) -> np.ndarray:
    """Mosaic: every ``pixel_size`` block takes the colour of its centre pixel."""
    h, w = frame.shape[:2]
    return take(frame, pixelate_axes(h, w, int(pixel_size)))


def fisheye(frame: np.ndarray, strength: float = 50) -> np.ndarray:
    """Bulge the centre of the frame outwards (0-100)."""
    h, w = frame.shape[:2]
    return _remap(frame, fisheye_map(h, w, float(strength)))


def barrel(frame: np.ndarray, strength: float = 0) -> np.ndarray:
    """Lens distortion. Positive = barrel, negative = pincushion (-100 to 100)."""
    h, w = frame.shape[:2]
    return _remap(frame, barrel_map(h, w, float(strength)))
