"""
Lumen — Frame Source & Consumer Tests

Run with: pytest tests/test_video_io.py -v
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.backend import FrameBuffer, PixelFormat
from core.video_io import (
    CallbackConsumer,
    CollectingConsumer,
    NullConsumer,
    SequenceSource,
    StaticFrameSource,
    VideoCaptureSource,
    VideoWriterConsumer,
    load_frame,
    save_frame,
)


def _buffer(arr):
    h, w = arr.shape[:2]
    return FrameBuffer(w, h, PixelFormat.for_channels(arr.shape[2]), arr)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class TestSources:

    def test_static(self, frame):
        src = StaticFrameSource(frame)
        assert src.resolution == (64, 48)
        assert src.get_frame() is src.get_frame()

    def test_sequence_ends(self, frame):
        src = SequenceSource([frame, frame])
        assert src.get_frame() is not None
        assert src.get_frame() is not None
        assert src.exhausted
        assert src.get_frame() is None

    def test_sequence_loops(self, frame, noisy_frame):
        src = SequenceSource([frame, noisy_frame], loop=True)
        got = [src.get_frame() for _ in range(5)]
        assert got[0] is frame and got[2] is frame and got[4] is frame
        assert not src.exhausted

    def test_sequence_resolution_follows_frames(self, frame, noisy_frame):
        src = SequenceSource([frame, noisy_frame])
        assert src.resolution == (64, 48)
        src.get_frame()
        src.get_frame()
        assert src.resolution == (32, 32)

    def test_empty_sequence(self):
        with pytest.raises(ValueError):
            SequenceSource([])

    def test_missing_video(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            VideoCaptureSource(tmp_path / "missing.mp4")


# ---------------------------------------------------------------------------
# Consumers
# ---------------------------------------------------------------------------

class TestConsumers:

    def test_collecting_copies(self, frame):
        out = CollectingConsumer()
        arr = frame.copy()
        out.consume(_buffer(arr))
        arr[:] = 0
        np.testing.assert_array_equal(out.last, frame)
        assert len(out) == 1

    def test_collecting_limit(self, frame):
        out = CollectingConsumer(limit=2)
        for value in (1, 2, 3):
            out.consume(_buffer(np.full_like(frame, value)))
        assert len(out) == 2
        assert out.frames[0][0, 0, 0] == 2
        assert out.last[0, 0, 0] == 3

    def test_callback_and_null(self, frame):
        seen = []
        CallbackConsumer(seen.append).consume(_buffer(frame))
        assert len(seen) == 1
        null = NullConsumer()
        null.consume(_buffer(frame))
        null.consume(_buffer(frame))
        assert null.count == 2

    def test_video_round_trip(self, tmp_path, frame):
        path = tmp_path / "clip.avi"
        try:
            writer = VideoWriterConsumer(path, 10.0, (64, 48), fourcc="MJPG")
        except RuntimeError:
            pytest.skip("MJPG writer not available in this OpenCV build")
        with writer:
            for _ in range(4):
                writer.consume(_buffer(frame))
        assert writer.count == 4

        with VideoCaptureSource(path) as src:
            assert src.resolution == (64, 48)
            frames = []
            while (f := src.get_frame()) is not None:
                frames.append(f)
        assert len(frames) == 4
        # lossy codec: only check the colours are roughly where they were
        assert np.abs(frames[0].astype(int) - frame.astype(int)).mean() < 10


# ---------------------------------------------------------------------------
# Still images
# ---------------------------------------------------------------------------

class TestStills:

    def test_png_round_trip(self, tmp_path, frame):
        path = tmp_path / "nested" / "f.png"
        save_frame(frame, path)
        loaded = load_frame(path)
        assert loaded.shape == (48, 64, 3)
        np.testing.assert_array_equal(loaded, frame)

    def test_rgba_png_keeps_alpha(self, tmp_path, rgba_frame):
        path = tmp_path / "a.png"
        save_frame(rgba_frame, path)
        np.testing.assert_array_equal(load_frame(path), rgba_frame)

    def test_rgba_to_jpeg_drops_alpha(self, tmp_path, rgba_frame):
        path = tmp_path / "a.jpg"
        save_frame(rgba_frame, path)
        assert load_frame(path).shape == (32, 32, 3)
