"""
Lumen — GPU Backend
Renders a chain with the torch programs from effects/shaders.py.

Frames are uploaded once into a (1, 3, H, W) float32 device tensor and
ping-pong between two preallocated tensors, one pass per stage. After each
pass the target is clamped to 0-255 and rounded, exactly like writing to an
8-bit render target, so results track the CPU backend within 2/255.

Device policy: ``device="auto"`` uses CUDA, then Apple MPS, and otherwise
raises BackendUnsupported so the scheduler falls back to the CPU backend.
An explicit device string (including ``"cpu"``) is used as given.
"""

import logging

import numpy as np

from core.backend import FrameBuffer, PixelFormat, RenderBackend
from core.errors import BackendUnsupported, FrameError, ShaderCompileError
from effects.shaders import ShaderContext

try:
    import torch
except ImportError:
    torch = None

logger = logging.getLogger(__name__)


def gpu_available() -> bool:
    """True when torch is importable and an accelerator is present."""
    if torch is None:
        return False
    if torch.cuda.is_available():
        return True
    mps = getattr(torch.backends, "mps", None)
    return bool(mps is not None and mps.is_available())


def resolve_device(preference: str = "auto"):
    """Map a device preference to a torch.device, or raise BackendUnsupported."""
    if torch is None:
        raise BackendUnsupported("torch is not installed")
    if preference in (None, "", "auto"):
        if torch.cuda.is_available():
            return torch.device("cuda")
        mps = getattr(torch.backends, "mps", None)
        if mps is not None and mps.is_available():
            return torch.device("mps")
        raise BackendUnsupported("no CUDA or MPS device available")
    try:
        device = torch.device(preference)
    except (RuntimeError, TypeError) as e:
        raise BackendUnsupported(f"invalid device '{preference}': {e}") from e
    if device.type == "cuda" and not torch.cuda.is_available():
        raise BackendUnsupported("CUDA requested but not available")
    if device.type == "mps":
        mps = getattr(torch.backends, "mps", None)
        if mps is None or not mps.is_available():
            raise BackendUnsupported("MPS requested but not available")
    return device


class GpuBackend(RenderBackend):
    """Tensor backend.

    Args:
        catalog: EffectCatalog; every registered effect must carry a GPU program.
        device: "auto", "cuda", "cuda:N", "mps" or "cpu".
    """

    name = "gpu"

    def __init__(self, catalog, device: str = "auto", max_frame_dimension: int = 8192):
        super().__init__(catalog, max_frame_dimension)
        self._device_pref = device
        self.device = None
        self._ctx = None
        self._programs = {}
        self._ping = None
        self._pong = None

    def initialize(self, width: int, height: int) -> None:
        self._check_dimensions(width, height)
        self.teardown()
        device = resolve_device(self._device_pref)
        ctx = ShaderContext(device)

        programs = {}
        for definition in self._catalog:
            if definition.shader is None:
                raise ShaderCompileError(f"{definition.effect_id}: no GPU program")
            with torch.no_grad():
                programs[definition.effect_id] = definition.shader.compile(
                    ctx, definition.defaults()
                )
        # drop textures left over from the compile probes
        ctx.release()

        try:
            self._ping = torch.zeros((1, 3, height, width), dtype=torch.float32, device=device)
            self._pong = torch.zeros_like(self._ping)
        except RuntimeError as e:
            raise BackendUnsupported(f"could not allocate {width}x{height} on {device}: {e}") from e

        self.device = device
        self._ctx = ctx
        self._programs = programs
        self.width, self.height = width, height
        logger.info(
            f"GPU backend initialized at {width}x{height} on {device} "
            f"({len(programs)} programs)"
        )

    def _program(self, effect_id):
        program = self._programs.get(effect_id)
        if program is None:
            # registered after initialize()
            definition = self._catalog.lookup(effect_id)
            if definition.shader is None:
                raise FrameError(f"{effect_id}: no GPU program")
            try:
                with torch.no_grad():
                    program = definition.shader.compile(self._ctx, definition.defaults())
            except ShaderCompileError as e:
                raise FrameError(str(e)) from e
            self._programs[effect_id] = program
        return program

    def process(self, frame, stages) -> FrameBuffer:
        arr = self._check_frame(frame)
        fmt = PixelFormat.for_channels(arr.shape[2])

        with torch.no_grad():
            src = torch.from_numpy(np.ascontiguousarray(arr[:, :, :3])).to(self.device)
            cur, nxt = self._ping, self._pong
            cur.copy_(src.permute(2, 0, 1).unsqueeze(0))

            for stage in stages:
                program = self._program(stage.effect_id)
                uniforms = {name: stage.params[name] for name in program.uniforms}
                if program.temporal:
                    uniforms["previous"] = self._history.get(stage.effect_id)
                    self._history[stage.effect_id] = cur.clone()
                try:
                    result = program.kernel(self._ctx, cur, **uniforms)
                except Exception as e:
                    raise FrameError(f"{stage.effect_id}: {e}") from e
                if result is cur:
                    continue
                if tuple(result.shape) != tuple(nxt.shape):
                    raise FrameError(
                        f"{stage.effect_id}: produced {tuple(result.shape)}, "
                        f"expected {tuple(nxt.shape)}"
                    )
                nxt.copy_(result)
                nxt.clamp_(0.0, 255.0).round_()
                cur, nxt = nxt, cur
            self._prune_history(stages)

            out = cur[0].permute(1, 2, 0).to(torch.uint8)
            if fmt is PixelFormat.RGBA32:
                alpha = torch.from_numpy(np.ascontiguousarray(arr[:, :, 3:])).to(self.device)
                out = torch.cat([out, alpha], dim=2)
        return FrameBuffer(self.width, self.height, fmt, out.contiguous())

    def teardown(self) -> None:
        was_cuda = self.device is not None and self.device.type == "cuda"
        if self._ctx is not None:
            self._ctx.release()
            logger.debug("GPU backend torn down")
        self._ctx = None
        self._programs = {}
        self._ping = self._pong = None
        self._history.clear()
        self.device = None
        self.width = self.height = None
        if was_cuda:
            torch.cuda.empty_cache()
