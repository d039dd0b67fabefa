"""
Lumen — Shared Sampling Maps & Weight Tables

Everything here is computed on the host with numpy and consumed by both
backends, so geometry effects sample exactly the same source pixels on
either one.

Sampling data is kept small:
- Pixelate, offset, zoom and motion taps are separable. They are stored as
  one row-index and one column-index vector, O(H + W) per map.
- Fisheye and barrel are the only full-frame maps: a float32 ``(map_x,
  map_y)`` pair fed to ``cv2.remap``. Their values are already rounded and
  clamped to pixel centres, so nearest-neighbour lookup is exact.

Frame-sized tables live in caches bounded by bytes, not entry count.
All returned arrays are read-only; never mutate them.
"""

import math
import threading
from collections import OrderedDict
from functools import lru_cache, wraps

import numpy as np

LUMA_WEIGHTS = (0.299, 0.587, 0.114)

SEPIA_MATRIX = (
    (0.393, 0.769, 0.189),
    (0.349, 0.686, 0.168),
    (0.272, 0.534, 0.131),
)

SHARPEN_BASE = ((0.0, -1.0, 0.0), (-1.0, 4.0, -1.0), (0.0, -1.0, 0.0))

EMBOSS_KERNEL = ((-2.0, -1.0, 0.0), (-1.0, 1.0, 1.0), (0.0, 1.0, 2.0))

MAX_BLUR_HALF_WIDTH = 60
MAX_MOTION_HALF_TAPS = 8
ZOOM_TAPS = 8
ZOOM_MAX_PULL = 0.25
VINTAGE_VIGNETTE_SIZE = 50.0
NOISE_AMPLITUDE = 64.0

MAP_CACHE_MB = 64


class SizedCache:
    """Thread-safe LRU cache bounded by the total ``nbytes`` of its values.

    A value may be an array or a tuple of arrays. One entry larger than the
    whole budget is still kept (alone) so the current frame size always hits.
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        self.nbytes = 0
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def sizeof(value) -> int:
        if isinstance(value, tuple):
            return sum(SizedCache.sizeof(v) for v in value)
        return int(getattr(value, "nbytes", 0))

    def get(self, key, make):
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key][0]
        value = make()
        size = self.sizeof(value)
        with self._lock:
            if key not in self._entries:
                self._entries[key] = (value, size)
                self.nbytes += size
            while self.nbytes > self.max_bytes and len(self._entries) > 1:
                _, (_, evicted) = self._entries.popitem(last=False)
                self.nbytes -= evicted
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.nbytes = 0

    def __len__(self):
        return len(self._entries)


def sized_cache(max_mb: float = MAP_CACHE_MB):
    """Like ``functools.lru_cache`` for positional args, bounded by megabytes."""
    def decorate(fn):
        cache = SizedCache(int(max_mb * 1024 * 1024))

        @wraps(fn)
        def cached(*args):
            return cache.get(args, lambda: fn(*args))

        cached.cache = cache
        return cached
    return decorate


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def to_uint8(f: np.ndarray) -> np.ndarray:
    """Quantize a float working buffer to 8 bits (round half to even, clamp)."""
    return np.clip(np.rint(f), 0, 255).astype(np.uint8)


def luma(f: np.ndarray) -> np.ndarray:
    """(H, W, 3) float32 → (H, W) float32 Rec.601 luma."""
    wr, wg, wb = LUMA_WEIGHTS
    return f[:, :, 0] * wr + f[:, :, 1] * wg + f[:, :, 2] * wb


def mix_channels(f: np.ndarray, matrix) -> np.ndarray:
    """Apply a 3x3 colour matrix channel by channel (row i produces channel i)."""
    r, g, b = f[:, :, 0], f[:, :, 1], f[:, :, 2]
    out = np.empty_like(f)
    for i, (mr, mg, mb) in enumerate(matrix):
        out[:, :, i] = r * mr + g * mg + b * mb
    return out


def hue_rotation_matrix(degrees: float) -> tuple:
    """Linear hue-rotation matrix (luma-preserving rotation around the gray axis)."""
    a = math.radians(degrees)
    c, s = math.cos(a), math.sin(a)
    return (
        (0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928),
        (0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283),
        (0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072),
    )


def sharpen_kernel(intensity: float) -> np.ndarray:
    """3x3 unsharp kernel: identity plus ``intensity/100`` of the Laplacian."""
    a = intensity / 100.0
    k = np.array(SHARPEN_BASE, dtype=np.float64) * a
    k[1, 1] += 1.0
    return k.astype(np.float32)


@lru_cache(maxsize=64)
def gaussian_kernel(sigma: float) -> np.ndarray | None:
    """Normalized 1-D Gaussian weights, or None when sigma is 0 (identity)."""
    if sigma <= 0:
        return None
    half = min(int(math.ceil(3.0 * sigma)), MAX_BLUR_HALF_WIDTH)
    x = np.arange(-half, half + 1, dtype=np.float64)
    k = np.exp(-(x * x) / (2.0 * sigma * sigma))
    k /= k.sum()
    return _frozen(k.astype(np.float32))


def _smoothstep(edge0, edge1, x):
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


@sized_cache()
def vignette_mask(h: int, w: int, intensity: float, size: float) -> np.ndarray:
    """(H, W) float32 brightness multiplier with a radial falloff.

    Distance is measured in texture space from the frame centre;
    the falloff runs from ``size/100`` (fully dark) in to half of that (untouched).
    """
    u = (np.arange(w, dtype=np.float64) + 0.5) / w
    v = (np.arange(h, dtype=np.float64) + 0.5) / h
    dist = np.sqrt((u[None, :] - 0.5) ** 2 + (v[:, None] - 0.5) ** 2)
    outer = size / 100.0
    inner = outer * 0.5
    if outer == inner:
        falloff = (dist <= outer).astype(np.float64)
    else:
        falloff = _smoothstep(outer, inner, dist)
    k = intensity / 100.0
    mask = 1.0 * (1.0 - k) + falloff * k
    return _frozen(mask.astype(np.float32))


# ---------------------------------------------------------------------------
# Separable sampling (row vector, column vector)
# ---------------------------------------------------------------------------

def _axis(positions, n):
    return _frozen(np.clip(np.rint(positions), 0, n - 1).astype(np.int64))


def take(frame: np.ndarray, axes) -> np.ndarray:
    """Gather ``frame[rows[:, None], cols[None, :]]`` from a separable map."""
    rows, cols = axes
    return frame.take(rows, axis=0).take(cols, axis=1)


@lru_cache(maxsize=64)
def pixelate_axes(h: int, w: int, size: int) -> tuple:
    """Each pixel samples the centre of its ``size``×``size`` block."""
    size = max(1, int(size))
    ys = np.arange(h)
    xs = np.arange(w)
    return (_axis((ys // size) * size + size // 2, h),
            _axis((xs // size) * size + size // 2, w))


@lru_cache(maxsize=256)
def shift_axes(h: int, w: int, dy: int, dx: int) -> tuple:
    """Sample from (y + dy, x + dx), clamped to the edge."""
    return _axis(np.arange(h) + dy, h), _axis(np.arange(w) + dx, w)


@lru_cache(maxsize=64)
def motion_offsets(angle: float, distance: float) -> tuple:
    """Integer (dy, dx) taps along a ``distance`` px line through each pixel."""
    if distance < 1:
        return ((0, 0),)
    n = min(int(distance), MAX_MOTION_HALF_TAPS) * 2 + 1
    a = math.radians(angle)
    ca, sa = math.cos(a), math.sin(a)
    taps = []
    for i in range(n):
        t = -distance / 2.0 + distance * i / (n - 1)
        taps.append((int(np.rint(sa * t)), int(np.rint(ca * t))))
    return tuple(taps)


@lru_cache(maxsize=64)
def motion_kernel(angle: float, distance: float) -> tuple:
    """Line kernel of tap counts for ``cv2.filter2D``, and the tap total.

    Counts are whole numbers so flat regions stay exact; divide the filtered
    result by the total.
    """
    offsets = motion_offsets(angle, distance)
    ry = max(abs(dy) for dy, _ in offsets)
    rx = max(abs(dx) for _, dx in offsets)
    k = np.zeros((2 * ry + 1, 2 * rx + 1), dtype=np.float32)
    for dy, dx in offsets:
        k[ry + dy, rx + dx] += 1.0
    return _frozen(k), len(offsets)


def motion_trail_weight(distance: float) -> float:
    """How much of the previous frame bleeds into a motion-blurred frame."""
    return min(distance / 50.0, 1.0) * 0.5


@lru_cache(maxsize=64)
def zoom_axes(h: int, w: int, strength: float, center_x: float, center_y: float) -> tuple:
    """Per-tap sampling axes pulled towards (center_x%, center_y%) at growing scale."""
    k = strength / 100.0
    cx = center_x / 100.0 * w
    cy = center_y / 100.0 * h
    ys = np.arange(h, dtype=np.float64)
    xs = np.arange(w, dtype=np.float64)
    taps = []
    for i in range(ZOOM_TAPS):
        scale = 1.0 - ZOOM_MAX_PULL * k * i / (ZOOM_TAPS - 1)
        taps.append((_axis(cy + (ys + 0.5 - cy) * scale - 0.5, h),
                     _axis(cx + (xs + 0.5 - cx) * scale - 0.5, w)))
    return tuple(taps)


# ---------------------------------------------------------------------------
# Full-frame remap (fisheye, barrel)
# ---------------------------------------------------------------------------

def _radial(h, w, scale_fn):
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
    nx = (xs + 0.5) / w * 2.0 - 1.0
    ny = (ys + 0.5) / h * 2.0 - 1.0
    scale = scale_fn(nx * nx + ny * ny)
    map_x = np.clip(np.rint((nx * scale + 1.0) / 2.0 * w - 0.5), 0, w - 1)
    map_y = np.clip(np.rint((ny * scale + 1.0) / 2.0 * h - 0.5), 0, h - 1)
    return _frozen(map_x.astype(np.float32)), _frozen(map_y.astype(np.float32))


@sized_cache()
def fisheye_map(h: int, w: int, strength: float) -> tuple:
    """Magnify the centre: sample closer to it, fading out at the unit circle."""
    k = strength / 100.0
    return _radial(h, w, lambda r2: 1.0 - 0.5 * k * (1.0 - np.minimum(r2, 1.0)))


@sized_cache()
def barrel_map(h: int, w: int, strength: float) -> tuple:
    """Barrel (positive) or pincushion (negative) distortion."""
    k = strength / 100.0
    return _radial(h, w, lambda r2: 1.0 + 0.5 * k * r2)


def flat_index(remap: tuple) -> np.ndarray:
    """(H*W,) int32 row-major source index for a ``(map_x, map_y)`` pair."""
    map_x, map_y = remap
    w = map_x.shape[1]
    return (map_y.astype(np.int32) * w + map_x.astype(np.int32)).ravel()


@sized_cache()
def noise_field(h: int, w: int, seed: int, colored: bool) -> np.ndarray:
    """Seeded uniform grain in [-1, 1]: (H, W, 3) when coloured, else (H, W, 1)."""
    rng = np.random.default_rng(int(seed))
    channels = 3 if colored else 1
    return _frozen(rng.uniform(-1.0, 1.0, (h, w, channels)).astype(np.float32))
