"""
Lumen — CPU Backend
Renders a chain with the numpy effect functions.

One working uint8 buffer per resolution: each stage reads it and its result
overwrites it, so stage i always consumes stage i-1's quantized output.
"""

import logging

import numpy as np

from core.backend import FrameBuffer, PixelFormat, RenderBackend
from core.errors import FrameError

logger = logging.getLogger(__name__)


class CpuBackend(RenderBackend):
    """Pixel-buffer backend. Always available."""

    name = "cpu"

    def __init__(self, catalog, max_frame_dimension: int = 8192):
        super().__init__(catalog, max_frame_dimension)
        self._work = None
        self._out = {}

    def initialize(self, width: int, height: int) -> None:
        self._check_dimensions(width, height)
        self.teardown()
        self._work = np.zeros((height, width, 3), dtype=np.uint8)
        self.width, self.height = width, height
        logger.info(f"CPU backend initialized at {width}x{height}")

    def _output(self, fmt: PixelFormat) -> np.ndarray:
        out = self._out.get(fmt)
        if out is None:
            out = np.zeros((self.height, self.width, fmt.channels), dtype=np.uint8)
            self._out[fmt] = out
        return out

    def process(self, frame, stages) -> FrameBuffer:
        arr = self._check_frame(frame)
        fmt = PixelFormat.for_channels(arr.shape[2])
        work = self._work
        np.copyto(work, arr[:, :, :3])

        for stage in stages:
            definition = self._catalog.lookup(stage.effect_id)
            kwargs = dict(stage.params)
            if definition.temporal:
                kwargs["previous"] = self._history.get(stage.effect_id)
                self._history[stage.effect_id] = work.copy()
            try:
                result = definition.process(work, **kwargs)
            except FrameError:
                raise
            except Exception as e:
                raise FrameError(f"{stage.effect_id}: {e}") from e
            if result.shape != work.shape or result.dtype != np.uint8:
                raise FrameError(
                    f"{stage.effect_id}: returned {result.dtype} {result.shape}, "
                    f"expected uint8 {work.shape}"
                )
            np.copyto(work, result)
        self._prune_history(stages)

        out = self._output(fmt)
        out[:, :, :3] = work
        if fmt is PixelFormat.RGBA32:
            out[:, :, 3] = arr[:, :, 3]
        return FrameBuffer(self.width, self.height, fmt, out)

    def teardown(self) -> None:
        if self._work is not None:
            logger.debug("CPU backend torn down")
        self._work = None
        self._out = {}
        self._history.clear()
        self.width = self.height = None
