"""
Conftest: shared fixtures for all Lumen test modules.

1. Catalog / chain / preset store wiring with an event recorder
2. Deterministic synthetic frames (no video files needed)
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.catalog import build_default_catalog
from core.chain import EffectChain
from core.cpu_backend import CpuBackend
from core.events import ANY, EventBus
from core.presets import PresetStore


def _make_test_frame(width=64, height=48):
    """Generate a synthetic test frame (gradient, not blank)."""
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, :, 0] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]  # R gradient
    frame[:, :, 1] = 128  # constant G
    frame[:, :, 2] = np.linspace(255, 0, height, dtype=np.uint8)[:, np.newaxis]  # B inverse
    return frame


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus):
        self.events = []
        bus.subscribe(ANY, self.events.append)

    @property
    def types(self):
        return [e.type for e in self.events]

    def of(self, event_type):
        return [e for e in self.events if e.type == event_type]

    def clear(self):
        self.events.clear()


# ---------------------------------------------------------------------------
# Pipeline pieces
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def catalog():
    """Default catalog. Read-only in tests; build a fresh one to register into."""
    return build_default_catalog()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def chain(catalog, bus):
    return EffectChain(catalog, max_effects=10, events=bus)


@pytest.fixture
def store(catalog, chain, bus):
    return PresetStore(catalog, chain, bus)


def _render(catalog, frame, entries):
    chain = EffectChain(catalog)
    for effect_id, params in entries:
        chain.enable(effect_id)
        for name, value in params.items():
            chain.set_parameter(effect_id, name, value)
    h, w = frame.shape[:2]
    with CpuBackend(catalog) as backend:
        backend.initialize(w, h)
        return backend.process(frame, chain.snapshot()).to_array().copy()


@pytest.fixture
def render(catalog):
    """One effect through a fresh chain on the CPU backend: render(frame, "blur", radius=3)."""
    def _one(frame, effect_id, **params):
        return _render(catalog, frame, [(effect_id, params)])
    return _one


@pytest.fixture
def render_chain(catalog):
    """Several effects in order: render_chain(frame, [("blur", {}), ("invert", {})])."""
    def _many(frame, entries):
        return _render(catalog, frame, entries)
    return _many


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

@pytest.fixture
def frame():
    """A 64x48 gradient RGB frame."""
    return _make_test_frame()


@pytest.fixture
def noisy_frame():
    """A 32x32 deterministic random RGB frame."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 256, (32, 32, 3), dtype=np.uint8)


@pytest.fixture
def gray_frame():
    """2x2 mid-gray (128) frame."""
    return np.full((2, 2, 3), 128, dtype=np.uint8)


@pytest.fixture
def rgba_frame():
    """32x32 RGBA frame with a horizontal alpha ramp."""
    f = np.zeros((32, 32, 4), dtype=np.uint8)
    f[:, :, :3] = _make_test_frame(32, 32)
    f[:, :, 3] = np.linspace(0, 255, 32, dtype=np.uint8)[np.newaxis, :]
    return f
