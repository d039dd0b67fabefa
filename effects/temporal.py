"""
Lumen — Motion Effects (CPU)
Motion blur and zoom blur.

Motion blur is the only effect with cross-frame state. It doesn't keep that
state itself: the backend passes the stage input it saw on the previous tick
as ``previous`` (None on the first tick or after a resolution change).
"""

import cv2
import numpy as np

from effects.maps import motion_kernel, motion_trail_weight, take, to_uint8, zoom_axes


def motion_blur(frame: np.ndarray, angle: float = 0, distance: float = 10,
                previous: np.ndarray | None = None) -> np.ndarray:
    """Directional streak plus a trail of the previous frame.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        angle: Streak direction in degrees (0 = horizontal).
        distance: Streak length in pixels (0-50). Also sets how much of the
            previous frame is blended in (up to 50% at distance 50).
        previous: Stage input from the previous tick, injected by the backend.

    Returns:
        Blurred frame.
    """
    kernel, taps = motion_kernel(float(angle), float(distance))
    streak = cv2.filter2D(frame.astype(np.float32), cv2.CV_32F, kernel,
                          borderType=cv2.BORDER_REPLICATE) / float(taps)
    trail = motion_trail_weight(distance)
    if previous is not None and previous.shape == frame.shape and trail > 0:
        streak = streak * (1.0 - trail) + previous.astype(np.float32) * trail
    return to_uint8(streak)


def zoom_blur(frame: np.ndarray, strength: float = 25, center_x: float = 50,
              center_y: float = 50) -> np.ndarray:
    """Radial blur towards a centre point given in percent of the frame."""
    h, w = frame.shape[:2]
    taps = zoom_axes(h, w, float(strength), float(center_x), float(center_y))
    acc = np.zeros(frame.shape, dtype=np.float32)
    for axes in taps:
        acc += take(frame, axes)
    return to_uint8(acc / float(len(taps)))
