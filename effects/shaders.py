"""
Lumen — GPU Programs

Tensor-program counterparts of the CPU effect functions. Each program is a
kernel over a (1, 3, H, W) float32 device tensor holding 0-255 values; the
backend clamps and rounds the result of every pass, the same way an 8-bit
render target would.

Lookup data (sampling axes, remap indices, masks, grain, filter weights)
comes from effects/maps.py and is uploaded once per ShaderContext, so
geometry effects sample exactly the same source pixels as the CPU path.
"""

import inspect
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

import numpy as np

from core.errors import ShaderCompileError
from effects.maps import (
    EMBOSS_KERNEL,
    LUMA_WEIGHTS,
    NOISE_AMPLITUDE,
    SEPIA_MATRIX,
    VINTAGE_VIGNETTE_SIZE,
    barrel_map,
    fisheye_map,
    flat_index,
    gaussian_kernel,
    hue_rotation_matrix,
    motion_offsets,
    motion_trail_weight,
    noise_field,
    pixelate_axes,
    sharpen_kernel,
    shift_axes,
    vignette_mask,
    zoom_axes,
)

try:
    import torch
    import torch.nn.functional as F
except ImportError:
    torch = None
    F = None

logger = logging.getLogger(__name__)

MAX_CACHED_MB = 256
_INJECTED = {"ctx", "x", "previous"}


def _nbytes(value) -> int:
    if isinstance(value, tuple):
        return sum(_nbytes(v) for v in value)
    return value.element_size() * value.nelement()


class ShaderContext:
    """Per-device binding state: uploaded lookup textures and index maps.

    Entries are evicted least-recently-used once their device memory passes
    ``max_mb``, so sweeping a slider through many values stays bounded.
    """

    def __init__(self, device, max_mb: float = MAX_CACHED_MB):
        self.device = device
        self.max_bytes = int(max_mb * 1024 * 1024)
        self.nbytes = 0
        self._textures = OrderedDict()

    def _cached(self, key, make):
        if key in self._textures:
            self._textures.move_to_end(key)
            return self._textures[key][0]
        value = make()
        size = _nbytes(value)
        self._textures[key] = (value, size)
        self.nbytes += size
        while self.nbytes > self.max_bytes and len(self._textures) > 1:
            _, (_, evicted) = self._textures.popitem(last=False)
            self.nbytes -= evicted
        return value

    def _upload(self, arr):
        # copy: cached host maps are read-only
        return torch.from_numpy(np.array(arr, copy=True)).to(self.device)

    def texture(self, key, builder):
        return self._cached(key, lambda: self._upload(builder()))

    def indices(self, key, builder):
        return self._cached(key, lambda: tuple(self._upload(a) for a in builder()))

    def __len__(self):
        return len(self._textures)

    def release(self):
        self._textures.clear()
        self.nbytes = 0


@dataclass(frozen=True)
class GpuProgram:
    """Descriptor for one effect's GPU pass.

    ``kernel(ctx, x, **uniforms)`` returns the unclamped output tensor.
    Temporal programs also accept ``previous``.
    """
    name: str
    kernel: Callable

    @property
    def uniforms(self) -> tuple:
        sig = inspect.signature(self.kernel)
        return tuple(p for p in sig.parameters if p not in _INJECTED)

    @property
    def temporal(self) -> bool:
        return "previous" in inspect.signature(self.kernel).parameters

    def compile(self, ctx: ShaderContext, defaults: dict) -> "GpuProgram":
        """Validate the program on ``ctx.device`` with a tiny dry-run dispatch."""
        if torch is None:
            raise ShaderCompileError(f"{self.name}: torch is not available")
        try:
            blank = torch.zeros((1, 3, 4, 4), dtype=torch.float32, device=ctx.device)
            uniforms = {k: defaults[k] for k in self.uniforms}
            out = self.kernel(ctx, blank, **uniforms)
        except Exception as e:
            raise ShaderCompileError(f"{self.name}: {e}") from e
        if tuple(out.shape) != (1, 3, 4, 4):
            raise ShaderCompileError(
                f"{self.name}: produced shape {tuple(out.shape)}, expected (1, 3, 4, 4)"
            )
        return self


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _luma(x):
    wr, wg, wb = LUMA_WEIGHTS
    return x[:, 0:1] * wr + x[:, 1:2] * wg + x[:, 2:3] * wb


def _mix_channels(x, matrix):
    r, g, b = x[:, 0:1], x[:, 1:2], x[:, 2:3]
    return torch.cat([r * mr + g * mg + b * mb for mr, mg, mb in matrix], dim=1)


def _size(x):
    return int(x.shape[-2]), int(x.shape[-1])


def _take(ctx, x, key, builder):
    rows, cols = ctx.indices(key, builder)
    return x.index_select(-2, rows).index_select(-1, cols)


def _remap(ctx, x, key, builder):
    index = ctx.texture(key, lambda: flat_index(builder()))
    return x.flatten(-2).index_select(-1, index).view_as(x)


def _gaussian(ctx, x, sigma):
    k = gaussian_kernel(float(sigma))
    if k is None:
        return x
    weights = ctx.texture(("gauss", float(sigma)), lambda: k)
    c = x.shape[1]
    half = (weights.shape[0] - 1) // 2
    kx = weights.view(1, 1, 1, -1).repeat(c, 1, 1, 1)
    ky = weights.view(1, 1, -1, 1).repeat(c, 1, 1, 1)
    x = F.conv2d(F.pad(x, (half, half, 0, 0), mode="replicate"), kx, groups=c)
    return F.conv2d(F.pad(x, (0, 0, half, half), mode="replicate"), ky, groups=c)


def _conv3x3(ctx, x, key, kernel):
    c = x.shape[1]
    w = ctx.texture(key, lambda: np.asarray(kernel, dtype=np.float32))
    w = w.view(1, 1, 3, 3).repeat(c, 1, 1, 1)
    return F.conv2d(F.pad(x, (1, 1, 1, 1), mode="replicate"), w, groups=c)


def _binary(mask):
    white = torch.where(mask, 255.0, 0.0)
    return white.expand(-1, 3, -1, -1)


def _vignette(ctx, x, intensity, size):
    h, w = _size(x)
    mask = ctx.texture(
        ("vignette", h, w, float(intensity), float(size)),
        lambda: vignette_mask(h, w, float(intensity), float(size)),
    )
    return mask.view(1, 1, h, w)


def _average(taps):
    acc = taps[0]
    for tap in taps[1:]:
        acc = acc + tap
    return acc / float(len(taps))


# ---------------------------------------------------------------------------
# Color
# ---------------------------------------------------------------------------

def brightness_program(ctx, x, intensity):
    return x + intensity * 2.55


def contrast_program(ctx, x, intensity):
    factor = (259 * (intensity + 255)) / (255 * (259 - intensity))
    return factor * (x - 128.0) + 128.0


def saturation_program(ctx, x, intensity):
    gray = _luma(x)
    return gray + (1.0 + intensity / 100.0) * (x - gray)


def hue_program(ctx, x, rotation):
    if rotation % 360 == 0:
        return x
    return _mix_channels(x, hue_rotation_matrix(rotation))


def gamma_program(ctx, x, gamma):
    return torch.pow(x / 255.0, 1.0 / gamma) * 255.0


def invert_program(ctx, x, intensity):
    return x + (255.0 - 2.0 * x) * (intensity / 100.0)


def threshold_program(ctx, x, threshold):
    return _binary(_luma(x) >= threshold)


# ---------------------------------------------------------------------------
# Artistic
# ---------------------------------------------------------------------------

def _sepia_mix(x, intensity):
    toned = _mix_channels(x, SEPIA_MATRIX)
    return x + (toned - x) * (intensity / 100.0)


def sepia_program(ctx, x, intensity):
    return _sepia_mix(x, intensity)


def grayscale_program(ctx, x, intensity):
    gray = _luma(x)
    return x + (gray - x) * (intensity / 100.0)


def vintage_program(ctx, x, intensity, vignette):
    return _sepia_mix(x, intensity) * _vignette(ctx, x, vignette, VINTAGE_VIGNETTE_SIZE)


def posterize_program(ctx, x, levels):
    steps = float(max(2, int(levels)) - 1)
    return torch.round(x / 255.0 * steps) * (255.0 / steps)


def edges_program(ctx, x, threshold, invert):
    p = F.pad(_luma(x), (1, 1, 1, 1), mode="replicate")[0, 0]
    gx = (p[:-2, 2:] + 2.0 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2.0 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[:-2, 1:-1] + p[:-2, 2:])
    edges = torch.sqrt(gx * gx + gy * gy) > threshold * 2.55
    if invert:
        edges = ~edges
    return _binary(edges.view(1, 1, *edges.shape))


# ---------------------------------------------------------------------------
# Distortion
# ---------------------------------------------------------------------------

def blur_program(ctx, x, radius):
    if radius <= 0:
        return x
    return _gaussian(ctx, x, radius)


def sharpen_program(ctx, x, intensity):
    return _conv3x3(ctx, x, ("sharpen", float(intensity)), sharpen_kernel(intensity))


def pixelate_program(ctx, x, pixel_size):
    h, w = _size(x)
    size = int(pixel_size)
    return _take(ctx, x, ("pixelate", h, w, size), lambda: pixelate_axes(h, w, size))


def fisheye_program(ctx, x, strength):
    h, w = _size(x)
    s = float(strength)
    return _remap(ctx, x, ("fisheye", h, w, s), lambda: fisheye_map(h, w, s))


def barrel_program(ctx, x, strength):
    h, w = _size(x)
    s = float(strength)
    return _remap(ctx, x, ("barrel", h, w, s), lambda: barrel_map(h, w, s))


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------

def noise_program(ctx, x, intensity, noise_type, seed):
    h, w = _size(x)
    colored = noise_type == "colored"
    grain = ctx.texture(
        ("noise", h, w, int(seed), colored),
        lambda: noise_field(h, w, int(seed), colored),
    )
    grain = grain.permute(2, 0, 1).unsqueeze(0)
    return x + grain * (intensity / 100.0 * NOISE_AMPLITUDE)


def emboss_program(ctx, x, strength):
    relief = _conv3x3(ctx, x, ("emboss",), EMBOSS_KERNEL)
    return x + (relief - x) * (strength / 100.0)


# ---------------------------------------------------------------------------
# Lighting
# ---------------------------------------------------------------------------

def vignette_program(ctx, x, intensity, size):
    return x * _vignette(ctx, x, intensity, size)


def glow_program(ctx, x, intensity, radius):
    halo = _gaussian(ctx, x, radius)
    return 255.0 - (255.0 - x) * (255.0 - halo * (intensity / 100.0)) / 255.0


def shadow_program(ctx, x, offset_x, offset_y, blur, opacity):
    h, w = _size(x)
    dy, dx = -int(offset_y), -int(offset_x)
    caster = _take(ctx, _luma(x), ("shift", h, w, dy, dx), lambda: shift_axes(h, w, dy, dx))
    caster = _gaussian(ctx, caster, blur)
    shade = 1.0 - (opacity / 100.0) * (1.0 - caster / 255.0)
    return x * shade


# ---------------------------------------------------------------------------
# Motion
# ---------------------------------------------------------------------------

def motion_blur_program(ctx, x, angle, distance, previous=None):
    h, w = _size(x)
    streak = _average([
        _take(ctx, x, ("shift", h, w, dy, dx), lambda dy=dy, dx=dx: shift_axes(h, w, dy, dx))
        for dy, dx in motion_offsets(float(angle), float(distance))
    ])
    trail = motion_trail_weight(distance)
    if previous is not None and previous.shape == x.shape and trail > 0:
        streak = streak * (1.0 - trail) + previous * trail
    return streak


def zoom_blur_program(ctx, x, strength, center_x, center_y):
    h, w = _size(x)
    s, cx, cy = float(strength), float(center_x), float(center_y)
    taps = zoom_axes(h, w, s, cx, cy)
    return _average([
        _take(ctx, x, ("zoom", h, w, s, cx, cy, i), lambda axes=axes: axes)
        for i, axes in enumerate(taps)
    ])
