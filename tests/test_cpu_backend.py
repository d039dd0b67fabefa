"""
Lumen — CPU Backend Tests
Buffer lifecycle, chain rendering, alpha passthrough and motion history.

Run with: pytest tests/test_cpu_backend.py -v
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.backend import FrameBuffer, PixelFormat
from core.catalog import EffectCatalog
from core.chain import ChainStage
from core.cpu_backend import CpuBackend
from core.errors import FrameError
from core.params import ParamSpec
from effects import EffectDefinition
from effects.color import brightness, invert


def _stage(effect_id, **params):
    return ChainStage(effect_id, params)


def _flat(value, w=16, h=8):
    return np.full((h, w, 3), value, dtype=np.uint8)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:

    def test_initialize_sets_resolution(self, catalog):
        backend = CpuBackend(catalog)
        assert not backend.initialized
        backend.initialize(64, 48)
        assert backend.initialized
        assert backend.resolution == (64, 48)
        assert "64x48" in repr(backend)

    def test_teardown_releases(self, catalog):
        backend = CpuBackend(catalog)
        backend.initialize(64, 48)
        backend.teardown()
        assert not backend.initialized
        backend.teardown()  # idempotent

    def test_context_manager_tears_down(self, catalog, frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            backend.process(frame, ())
        assert not backend.initialized

    @pytest.mark.parametrize("w,h", [(0, 10), (10, 0), (-1, 5)])
    def test_bad_dimensions(self, catalog, w, h):
        with pytest.raises(ValueError):
            CpuBackend(catalog).initialize(w, h)

    def test_dimension_limit(self, catalog):
        with pytest.raises(ValueError):
            CpuBackend(catalog, max_frame_dimension=32).initialize(64, 16)

    def test_process_before_initialize(self, catalog, frame):
        with pytest.raises(FrameError):
            CpuBackend(catalog).process(frame, ())


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestProcess:

    def test_empty_chain_is_identity(self, catalog, frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            buf = backend.process(frame, ())
            assert isinstance(buf, FrameBuffer)
            assert buf.pixel_format is PixelFormat.RGB24
            assert (buf.width, buf.height) == (64, 48)
            np.testing.assert_array_equal(buf.to_array(), frame)

    def test_matches_direct_function_composition(self, catalog, frame):
        expected = invert(brightness(frame, 30), 100)
        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            buf = backend.process(frame, (
                _stage("brightness", intensity=30),
                _stage("invert", intensity=100),
            ))
            np.testing.assert_array_equal(buf.to_array(), expected)

    def test_order_matters(self, catalog):
        f = _flat(100)
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            a = backend.process(f, (_stage("brightness", intensity=50),
                                    _stage("invert", intensity=100))).to_array().copy()
            b = backend.process(f, (_stage("invert", intensity=100),
                                    _stage("brightness", intensity=50))).to_array().copy()
        assert a[0, 0, 0] == 27
        assert b[0, 0, 0] == 255

    def test_input_not_mutated(self, catalog, frame):
        original = frame.copy()
        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            backend.process(frame, (_stage("invert", intensity=100),))
        np.testing.assert_array_equal(frame, original)

    def test_output_buffer_is_reused(self, catalog, frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            first = backend.process(frame, ()).to_array()
            second = backend.process(frame, (_stage("invert", intensity=100),)).to_array()
            assert first is second

    def test_size_mismatch(self, catalog, frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(32, 32)
            with pytest.raises(FrameError, match="64x48"):
                backend.process(frame, ())

    @pytest.mark.parametrize("bad", [
        np.zeros((8, 8), dtype=np.uint8),
        np.zeros((8, 8, 2), dtype=np.uint8),
        np.zeros((8, 8, 3), dtype=np.float32),
        "not a frame",
    ])
    def test_malformed_frames(self, catalog, bad):
        with CpuBackend(catalog) as backend:
            backend.initialize(8, 8)
            with pytest.raises(FrameError):
                backend.process(bad, ())

    def test_frame_objects_with_data_attribute(self, catalog, frame):
        class Wrapped:
            def __init__(self, data):
                self.data = data

        with CpuBackend(catalog) as backend:
            backend.initialize(64, 48)
            out = backend.process(Wrapped(frame), ()).to_array()
            np.testing.assert_array_equal(out, frame)


# ---------------------------------------------------------------------------
# Alpha
# ---------------------------------------------------------------------------

class TestAlpha:

    def test_alpha_passthrough(self, catalog, rgba_frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(32, 32)
            buf = backend.process(rgba_frame, (
                _stage("invert", intensity=100),
                _stage("blur", radius=3),
            ))
            out = buf.to_array()
        assert buf.pixel_format is PixelFormat.RGBA32
        assert out.shape == (32, 32, 4)
        np.testing.assert_array_equal(out[:, :, 3], rgba_frame[:, :, 3])

    def test_rgb_and_rgba_interleaved(self, catalog, rgba_frame):
        with CpuBackend(catalog) as backend:
            backend.initialize(32, 32)
            rgba = backend.process(rgba_frame, ()).to_array()
            rgb = backend.process(np.ascontiguousarray(rgba_frame[:, :, :3]), ()).to_array()
        assert rgba.shape[2] == 4
        assert rgb.shape[2] == 3


# ---------------------------------------------------------------------------
# Motion history
# ---------------------------------------------------------------------------

class TestMotionHistory:

    def test_first_frame_has_no_trail(self, catalog):
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            out = backend.process(_flat(100), (_stage("motion_blur", angle=0, distance=50),))
            assert out.to_array()[0, 0, 0] == 100

    def test_previous_frame_blends_in(self, catalog):
        stages = (_stage("motion_blur", angle=0, distance=50),)
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            backend.process(_flat(100), stages)
            out = backend.process(_flat(200), stages).to_array()
        assert out[4, 8, 0] == 150

    def test_history_uses_stage_input(self, catalog):
        # trail comes from what reached motion_blur last tick, not the raw frame
        stages = (_stage("brightness", intensity=20),
                  _stage("motion_blur", angle=0, distance=50))
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            backend.process(_flat(100), stages)     # stage input 151
            out = backend.process(_flat(50), stages).to_array()  # stage input 101
        assert out[4, 8, 0] == 126  # (101 + 151) / 2

    def test_history_pruned_when_effect_leaves_chain(self, catalog):
        stages = (_stage("motion_blur", angle=0, distance=50),)
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            backend.process(_flat(100), stages)
            assert "motion_blur" in backend._history
            backend.process(_flat(100), ())
            assert backend._history == {}
            out = backend.process(_flat(200), stages).to_array()
        assert out[0, 0, 0] == 200

    def test_reinitialize_clears_history(self, catalog):
        stages = (_stage("motion_blur", angle=0, distance=50),)
        with CpuBackend(catalog) as backend:
            backend.initialize(16, 8)
            backend.process(_flat(100), stages)
            backend.initialize(16, 8)
            out = backend.process(_flat(200), stages).to_array()
        assert out[0, 0, 0] == 200


# ---------------------------------------------------------------------------
# Misbehaving effects
# ---------------------------------------------------------------------------

def _custom_catalog(process):
    cat = EffectCatalog()
    cat.register(EffectDefinition(
        effect_id="custom",
        name="Custom",
        category="color",
        description="test effect",
        params={"amount": ParamSpec.numeric("amount", 0, 10, 1)},
        process=process,
    ))
    return cat


class TestEffectFailures:

    def test_exception_wrapped_in_frame_error(self):
        def explode(frame: np.ndarray, amount: float = 1):
            raise ZeroDivisionError("bad math")

        with CpuBackend(_custom_catalog(explode)) as backend:
            backend.initialize(8, 8)
            with pytest.raises(FrameError, match="custom: bad math"):
                backend.process(_flat(10, 8, 8), (_stage("custom", amount=1),))

    def test_wrong_output_shape_rejected(self):
        def shrink(frame: np.ndarray, amount: float = 1):
            return frame[:4]

        with CpuBackend(_custom_catalog(shrink)) as backend:
            backend.initialize(8, 8)
            with pytest.raises(FrameError, match="expected uint8"):
                backend.process(_flat(10, 8, 8), (_stage("custom", amount=1),))

    def test_wrong_dtype_rejected(self):
        def floaty(frame: np.ndarray, amount: float = 1):
            return frame.astype(np.float32)

        with CpuBackend(_custom_catalog(floaty)) as backend:
            backend.initialize(8, 8)
            with pytest.raises(FrameError):
                backend.process(_flat(10, 8, 8), (_stage("custom", amount=1),))
