"""
Lumen — Texture & Noise Effects (CPU)
Film grain noise, emboss.
"""

import cv2
import numpy as np

from effects.maps import EMBOSS_KERNEL, NOISE_AMPLITUDE, noise_field, to_uint8


def noise(frame: np.ndarray, intensity: float = 25, noise_type: str = "white",
          seed: int = 42) -> np.ndarray:
    """Add seeded grain to the frame.

    The grain pattern depends only on (frame size, seed), so the same frame
    always produces the same output.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: 0-100. 100 = ±64 levels.
        noise_type: 'white' (same offset on every channel) or 'colored'.
        seed: Grain pattern seed.

    Returns:
        Noisy frame.
    """
    h, w = frame.shape[:2]
    grain = noise_field(h, w, int(seed), noise_type == "colored")
    amplitude = intensity / 100.0 * NOISE_AMPLITUDE
    return to_uint8(frame.astype(np.float32) + grain * amplitude)


def emboss(frame: np.ndarray, strength: float = 50) -> np.ndarray:
    """Relief shading from the emboss kernel, blended by ``strength`` (0-100)."""
    f = frame.astype(np.float32)
    k = np.array(EMBOSS_KERNEL, dtype=np.float32)
    relief = cv2.filter2D(f, cv2.CV_32F, k, borderType=cv2.BORDER_REPLICATE)
    amount = strength / 100.0
    return to_uint8(f + (relief - f) * amount)
