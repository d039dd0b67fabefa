"""
Lumen — Command Bus Tests
Queued chain changes applied at frame boundaries, in order.

Run with: pytest tests/test_commands.py -v
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.commands import (
    ApplyPreset,
    Command,
    CommandBus,
    Disable,
    Enable,
    Reorder,
    Reset,
    SetParameter,
)
from core.errors import ChainFull, EffectNotActive, UnknownPreset


@pytest.fixture
def commands(chain, store):
    return CommandBus(chain, store)


class TestCommandBus:

    def test_nothing_applies_until_drain(self, commands, chain):
        commands.submit(Enable("blur"))
        assert len(chain) == 0
        assert commands.pending() == 1
        assert commands.drain() == 1
        assert chain.is_active("blur")
        assert commands.pending() == 0

    def test_fifo_order(self, commands, chain):
        commands.submit(Enable("blur"))
        commands.submit(Enable("invert"))
        commands.submit(Reorder("invert", 0))
        commands.submit(SetParameter("blur", "radius", 3))
        commands.drain()
        assert [s.effect_id for s in chain.snapshot()] == ["invert", "blur"]
        assert chain.get_parameter("blur", "radius") == 3

    def test_future_resolves_with_result(self, commands):
        commands.submit(Enable("brightness"))
        fut = commands.submit(SetParameter("brightness", "intensity", 400))
        commands.drain()
        assert fut.result(timeout=0) == 100

    def test_failed_command_does_not_block_others(self, commands, chain):
        bad = commands.submit(SetParameter("blur", "radius", 3))
        good = commands.submit(Enable("sepia"))
        commands.drain()
        with pytest.raises(EffectNotActive):
            bad.result(timeout=0)
        assert good.exception(timeout=0) is None
        assert chain.is_active("sepia")

    def test_chain_full_surfaces_through_future(self, catalog, store):
        from core.chain import EffectChain

        small = EffectChain(catalog, max_effects=1)
        bus = CommandBus(small, store)
        bus.submit(Enable("blur"))
        fut = bus.submit(Enable("sharpen"))
        bus.drain()
        assert isinstance(fut.exception(timeout=0), ChainFull)

    def test_apply_preset_and_reset(self, commands, chain):
        fut = commands.submit(ApplyPreset("blackwhite"))
        commands.drain()
        assert fut.result(timeout=0).name == "blackwhite"
        assert [s.effect_id for s in chain.snapshot()] == ["grayscale", "contrast", "brightness"]

        commands.submit(Reset())
        commands.drain()
        assert len(chain) == 0

    def test_unknown_preset(self, commands):
        fut = commands.submit(ApplyPreset("nope"))
        commands.drain()
        assert isinstance(fut.exception(timeout=0), UnknownPreset)

    def test_disable_result(self, commands):
        fut = commands.submit(Disable("blur"))
        commands.drain()
        assert fut.result(timeout=0) is False

    def test_commands_submitted_during_drain_wait_for_next(self, commands, chain):
        class EnableAndQueue(Enable):
            def apply(self, chain, presets):
                commands.submit(Enable("invert"))
                return super().apply(chain, presets)

        commands.submit(EnableAndQueue("blur"))
        assert commands.drain() == 1
        assert not chain.is_active("invert")
        assert commands.drain() == 1
        assert chain.is_active("invert")

    def test_clear_cancels(self, commands, chain):
        fut = commands.submit(Enable("blur"))
        commands.clear()
        assert fut.cancelled()
        assert commands.drain() == 0
        assert len(chain) == 0

    def test_command_must_implement_apply(self):
        class Nothing(Command):
            pass

        with pytest.raises(TypeError):
            Command()
        with pytest.raises(TypeError):
            Nothing()
