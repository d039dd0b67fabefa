"""
Lumen — Render Backend Contract

A backend owns its buffers from initialize() to teardown(). It renders one
frame through a chain snapshot per process() call, clamping and rounding
every stage to 8 bits. Alpha, when the input has it, is carried through
untouched.

Backends are context managers so release is deterministic:

    with CpuBackend(catalog) as backend:
        backend.initialize(640, 480)
        buf = backend.process(frame, chain.snapshot())
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import numpy as np

from core.errors import FrameError
from core.safety import validate_frame

logger = logging.getLogger(__name__)


class PixelFormat(str, Enum):
    RGB24 = "rgb24"
    RGBA32 = "rgba32"

    @property
    def channels(self) -> int:
        return 4 if self is PixelFormat.RGBA32 else 3

    @classmethod
    def for_channels(cls, channels: int) -> "PixelFormat":
        return cls.RGBA32 if channels == 4 else cls.RGB24


@dataclass
class FrameBuffer:
    """A rendered frame. ``storage`` is a numpy array (CPU) or a device tensor (GPU).

    CPU backends reuse one buffer per resolution; copy ``to_array()`` if the
    frame has to outlive the next tick.
    """
    width: int
    height: int
    pixel_format: PixelFormat
    storage: object

    def to_array(self) -> np.ndarray:
        """(H, W, C) uint8 host array."""
        storage = self.storage
        if hasattr(storage, "detach"):
            return storage.detach().cpu().numpy()
        return storage


def frame_array(frame) -> np.ndarray:
    """Pixel data of a numpy frame or any object with a ``.data`` array."""
    if isinstance(frame, np.ndarray):
        return frame
    data = getattr(frame, "data", None)
    if isinstance(data, np.ndarray):
        return data
    raise FrameError(f"Unsupported frame type: {type(frame).__name__}")


class RenderBackend(ABC):
    """Base class for CPU and GPU renderers.

    Args:
        catalog: EffectCatalog that chain stages are resolved against.
        max_frame_dimension: Largest accepted width or height.
    """

    name = "base"

    def __init__(self, catalog, max_frame_dimension: int = 8192):
        self._catalog = catalog
        self._max_dim = max_frame_dimension
        self.width = None
        self.height = None
        # effect_id -> stage input seen on the previous tick (temporal effects)
        self._history = {}

    @property
    def initialized(self) -> bool:
        return self.width is not None

    @property
    def resolution(self):
        return (self.width, self.height)

    @abstractmethod
    def initialize(self, width: int, height: int) -> None:
        """Allocate buffers for ``width`` x ``height`` frames."""

    @abstractmethod
    def process(self, frame, stages) -> FrameBuffer:
        """Render ``frame`` through ``stages`` (a chain snapshot)."""

    @abstractmethod
    def teardown(self) -> None:
        """Release everything allocated by initialize()."""

    def _check_frame(self, frame) -> np.ndarray:
        if not self.initialized:
            raise FrameError(f"{self.name} backend is not initialized")
        arr = frame_array(frame)
        validate_frame(arr, self._max_dim)
        h, w = arr.shape[:2]
        if (w, h) != (self.width, self.height):
            raise FrameError(
                f"Frame is {w}x{h}, backend was initialized for {self.width}x{self.height}"
            )
        return arr

    def _check_dimensions(self, width, height):
        if width < 1 or height < 1:
            raise ValueError(f"Invalid frame size {width}x{height}")
        if width > self._max_dim or height > self._max_dim:
            raise ValueError(f"Frame size {width}x{height} exceeds {self._max_dim} limit")

    def _prune_history(self, stages):
        live = {s.effect_id for s in stages}
        for effect_id in list(self._history):
            if effect_id not in live:
                del self._history[effect_id]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.teardown()
        return False

    def __repr__(self):
        size = f"{self.width}x{self.height}" if self.initialized else "uninitialized"
        return f"<{type(self).__name__} {size}>"
