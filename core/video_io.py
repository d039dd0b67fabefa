"""
Lumen — Frame Sources & Consumers
What the scheduler pulls frames from and hands rendered frames to.

Sources return (H, W, 3|4) uint8 RGB(A) arrays, or None when no frame is
ready (the tick is skipped). Consumers receive a core.backend.FrameBuffer.
Video files go through OpenCV; still images through Pillow.
"""

import logging
from pathlib import Path
from typing import Callable, Protocol, Sequence

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    @property
    def resolution(self) -> tuple[int, int]: ...

    def get_frame(self) -> np.ndarray | None: ...


class FrameConsumer(Protocol):
    def consume(self, frame) -> None: ...


# --- Sources ---

def _resolution_of(frame: np.ndarray) -> tuple[int, int]:
    h, w = frame.shape[:2]
    return (w, h)


class StaticFrameSource:
    """Yields the same frame on every tick."""

    def __init__(self, frame: np.ndarray):
        self.frame = frame

    @property
    def resolution(self):
        return _resolution_of(self.frame)

    def get_frame(self):
        return self.frame


class SequenceSource:
    """Yields frames from a list, then None (or starts over with ``loop``).

    The reported resolution follows the frame most recently handed out, so a
    sequence may change size mid-stream.
    """

    def __init__(self, frames: Sequence[np.ndarray], loop: bool = False):
        if not frames:
            raise ValueError("SequenceSource needs at least one frame")
        self.frames = list(frames)
        self.loop = loop
        self.position = 0
        self._current = self.frames[0]

    @property
    def resolution(self):
        return _resolution_of(self._current)

    @property
    def exhausted(self) -> bool:
        return not self.loop and self.position >= len(self.frames)

    def get_frame(self):
        if self.position >= len(self.frames):
            if not self.loop:
                return None
            self.position = 0
        frame = self.frames[self.position]
        self.position += 1
        self._current = frame
        return frame


class VideoCaptureSource:
    """Frames from a video file or capture device, converted BGR → RGB.

    Args:
        path: File path, or an integer camera index.
        loop: Rewind at end of file instead of returning None.
    """

    def __init__(self, path, loop: bool = False):
        self.path = path
        self.loop = loop
        self._cap = cv2.VideoCapture(path if isinstance(path, int) else str(path))
        if not self._cap.isOpened():
            raise FileNotFoundError(f"Can't open video source: {path}")
        self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.fps = self._cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.finished = False

    @property
    def resolution(self):
        return (self._width, self._height)

    def _read(self):
        ok, bgr = self._cap.read()
        return bgr if ok else None

    def get_frame(self):
        if self.finished or self._cap is None:
            return None
        bgr = self._read()
        if bgr is None and self.loop:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            bgr = self._read()
        if bgr is None:
            self.finished = True
            return None
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    def close(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


# --- Consumers ---

class CollectingConsumer:
    """Keeps a host copy of every frame (handy for tests and offline renders)."""

    def __init__(self, limit: int | None = None):
        self.frames = []
        self.limit = limit

    def consume(self, frame):
        self.frames.append(np.array(frame.to_array(), copy=True))
        if self.limit is not None and len(self.frames) > self.limit:
            self.frames.pop(0)

    @property
    def last(self):
        return self.frames[-1] if self.frames else None

    def __len__(self):
        return len(self.frames)


class CallbackConsumer:
    def __init__(self, callback: Callable):
        self.callback = callback

    def consume(self, frame):
        self.callback(frame)


class NullConsumer:
    """Discards frames; counts them. Used for benchmarking."""

    def __init__(self):
        self.count = 0

    def consume(self, frame):
        self.count += 1


class VideoWriterConsumer:
    """Writes RGB frames to a video file with OpenCV (mp4v)."""

    def __init__(self, path, fps: float, resolution: tuple[int, int], fourcc: str = "mp4v"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.resolution = resolution
        self._writer = cv2.VideoWriter(
            str(self.path), cv2.VideoWriter_fourcc(*fourcc), fps, resolution
        )
        if not self._writer.isOpened():
            raise RuntimeError(f"Can't open video writer for {self.path}")
        self.count = 0

    def consume(self, frame):
        rgb = frame.to_array()[:, :, :3]
        self._writer.write(cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2BGR))
        self.count += 1

    def close(self):
        if self._writer is not None:
            self._writer.release()
            self._writer = None
            logger.info(f"Wrote {self.count} frames to {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


# --- Still images ---

def load_frame(frame_path) -> np.ndarray:
    """Load an image as (H, W, 3) uint8 RGB, or (H, W, 4) if it has alpha."""
    img = Image.open(str(frame_path))
    mode = "RGBA" if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info else "RGB"
    return np.array(img.convert(mode))


def save_frame(array: np.ndarray, output_path):
    """Save an (H, W, 3|4) array; format follows the file extension."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.fromarray(np.clip(array, 0, 255).astype(np.uint8))
    if img.mode == "RGBA" and output_path.suffix.lower() in (".jpg", ".jpeg"):
        img = img.convert("RGB")
    img.save(str(output_path))
