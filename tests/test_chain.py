"""
Lumen — Effect Chain Tests
Enable/disable, parameters, ordering, capacity, snapshots and save-state.

Run with: pytest tests/test_chain.py -v
"""

import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.chain import ChainStage, EffectChain
from core.errors import (
    ChainFull,
    EffectNotActive,
    InvalidDocument,
    InvalidParameterValue,
    UnknownEffect,
    UnknownParameter,
)
from effects import EffectKind

TEN = ["brightness", "contrast", "saturation", "hue", "gamma",
       "sepia", "grayscale", "vintage", "posterize", "edges"]


def _ids(chain):
    return [s.effect_id for s in chain.snapshot()]


class TestEnableDisable:

    def test_enable_appends_with_defaults(self, chain):
        chain.enable("contrast")
        chain.enable("vignette")
        assert _ids(chain) == ["contrast", "vignette"]
        assert dict(chain.snapshot()[1].params) == {"intensity": 50, "size": 50}

    def test_reenable_is_noop(self, chain, recorder):
        chain.enable("blur")
        chain.set_parameter("blur", "radius", 9)
        recorder.clear()
        chain.enable("blur")
        assert _ids(chain) == ["blur"]
        assert chain.get_parameter("blur", "radius") == 9
        assert recorder.events == []

    def test_enable_returns_frozen_copy(self, chain):
        stage = chain.enable("brightness")
        assert isinstance(stage, ChainStage)
        with pytest.raises(TypeError):
            stage.params["intensity"] = 9999
        assert chain.get_parameter("brightness", "intensity") == 0

        chain.set_parameter("brightness", "intensity", 30)
        assert stage.params["intensity"] == 0
        assert chain.enable("brightness") == chain.snapshot()[0]

    def test_enable_unknown(self, chain):
        with pytest.raises(UnknownEffect):
            chain.enable("warp_drive")
        assert len(chain) == 0

    def test_disable(self, chain, recorder):
        chain.enable("invert")
        assert chain.disable("invert") is True
        assert len(chain) == 0
        toggled = recorder.of("effect-toggled")
        assert [(e.enabled, e.active_count) for e in toggled] == [(True, 1), (False, 0)]

    def test_disable_inactive_returns_false(self, chain, recorder):
        assert chain.disable("invert") is False
        assert recorder.events == []

    def test_enable_disable_inverse(self, chain):
        chain.enable("contrast")
        chain.enable("blur")
        before = chain.snapshot()
        chain.enable("sepia")
        chain.disable("sepia")
        assert chain.snapshot() == before

    def test_eleventh_enable_raises_chain_full(self, chain):
        for effect_id in TEN:
            chain.enable(effect_id)
        with pytest.raises(ChainFull) as exc:
            chain.enable("blur")
        assert exc.value.limit == 10
        assert len(chain) == 10
        assert _ids(chain) == TEN

    def test_custom_capacity(self, catalog):
        small = EffectChain(catalog, max_effects=2)
        small.enable("blur")
        small.enable("sharpen")
        with pytest.raises(ChainFull):
            small.enable("invert")

    def test_invalid_capacity(self, catalog):
        with pytest.raises(ValueError):
            EffectChain(catalog, max_effects=0)


class TestParameters:

    def test_set_parameter_clamps(self, chain, recorder):
        chain.enable("brightness")
        stored = chain.set_parameter("brightness", "intensity", 1000)
        assert stored == 100
        assert chain.get_parameter("brightness", "intensity") == 100
        changed = recorder.of("parameter-changed")[-1]
        assert (changed.effect_id, changed.param_name, changed.value) == ("brightness", "intensity", 100)

    def test_set_parameter_huge_integer(self, chain):
        chain.enable("brightness")
        assert chain.set_parameter("brightness", "intensity", 10 ** 400) == 100
        assert chain.set_parameter("brightness", "intensity", -(10 ** 400)) == -100

    def test_set_parameter_on_inactive_effect(self, chain):
        with pytest.raises(EffectNotActive):
            chain.set_parameter("brightness", "intensity", 10)

    def test_unknown_parameter(self, chain):
        chain.enable("brightness")
        with pytest.raises(UnknownParameter):
            chain.set_parameter("brightness", "loudness", 10)
        with pytest.raises(UnknownParameter):
            chain.get_parameter("brightness", "loudness")

    def test_invalid_value_leaves_old_value(self, chain):
        chain.enable("noise")
        with pytest.raises(InvalidParameterValue):
            chain.set_parameter("noise", "noise_type", "pink")
        assert chain.get_parameter("noise", "noise_type") == "white"

    def test_every_stored_value_in_range(self, chain, catalog):
        for effect_id in TEN:
            chain.enable(effect_id)
            for name, spec in catalog.lookup(effect_id).params.items():
                if spec.kind.value == "numeric":
                    chain.set_parameter(effect_id, name, 1e9)
        for stage in chain.snapshot():
            for name, value in stage.params.items():
                spec = catalog.lookup(stage.effect_id).params[name]
                if spec.kind.value == "numeric":
                    assert spec.min <= value <= spec.max


class TestOrdering:

    @pytest.fixture
    def abc(self, chain):
        for effect_id in ("blur", "sharpen", "invert"):
            chain.enable(effect_id)
        return chain

    def test_reorder(self, abc, recorder):
        assert abc.reorder("invert", 0) == 0
        assert _ids(abc) == ["invert", "blur", "sharpen"]
        assert recorder.of("effect-reordered")[-1].index == 0

    def test_reorder_clamps_out_of_range(self, abc):
        assert abc.reorder("blur", 99) == 2
        assert _ids(abc) == ["sharpen", "invert", "blur"]

    def test_reorder_negative_counts_from_end(self, abc):
        assert abc.reorder("blur", -1) == 2
        assert _ids(abc) == ["sharpen", "invert", "blur"]

    def test_reorder_same_position_is_silent(self, abc, recorder):
        recorder.clear()
        assert abc.reorder("sharpen", 1) == 1
        assert recorder.of("effect-reordered") == []

    def test_reorder_inactive(self, abc):
        with pytest.raises(EffectNotActive):
            abc.reorder("sepia", 0)

    def test_move(self, abc):
        assert abc.move("blur", 1) == 1
        assert _ids(abc) == ["sharpen", "blur", "invert"]
        assert abc.move("blur", -5) == 0

    def test_reset(self, abc, recorder):
        abc.reset()
        assert len(abc) == 0
        assert "chain-reset" in recorder.types


class TestSnapshot:

    def test_snapshot_is_immutable_copy(self, chain):
        chain.enable("blur")
        snap = chain.snapshot()
        chain.set_parameter("blur", "radius", 12)
        assert snap[0].params["radius"] == 5
        with pytest.raises(TypeError):
            snap[0].params["radius"] = 1

    def test_version_bumps_on_mutation(self, chain):
        v0 = chain.version
        chain.enable("blur")
        chain.set_parameter("blur", "radius", 2)
        assert chain.version == v0 + 2

    def test_batch_is_atomic_to_readers(self, chain):
        seen = []
        started = threading.Event()

        def reader():
            started.wait()
            seen.append(len(chain.snapshot()))

        t = threading.Thread(target=reader)
        t.start()
        with chain.batch():
            chain.enable("blur")
            started.set()
            t.join(0.05)
            chain.enable("sharpen")
        t.join()
        assert seen == [2]

    def test_active_effects(self, chain):
        chain.enable("sepia")
        assert chain.active_effects() == [{"effect_id": "sepia", "params": {"intensity": 50}}]


class TestDocuments:

    def test_roundtrip(self, chain, catalog):
        chain.enable("contrast")
        chain.set_parameter("contrast", "intensity", 40)
        chain.enable("noise")
        chain.set_parameter("noise", "noise_type", "colored")
        doc = chain.to_document()
        assert doc["effects"][0] == {"effectId": "contrast", "parameters": {"intensity": 40}}

        other = EffectChain(catalog)
        other.load_document(doc)
        assert other.snapshot() == chain.snapshot()

    def test_load_replaces_existing(self, chain):
        chain.enable("blur")
        chain.load_document({"version": 1, "effects": [{"effectId": "invert"}]})
        assert _ids(chain) == ["invert"]

    def test_bad_document_leaves_chain_untouched(self, chain):
        chain.enable("blur")
        before = chain.snapshot()
        with pytest.raises(UnknownEffect):
            chain.load_document({"effects": [{"effectId": "invert"}, {"effectId": "nope"}]})
        with pytest.raises(InvalidDocument):
            chain.load_document({"effects": [{"effect": "invert"}]})
        assert chain.snapshot() == before

    def test_load_too_many(self, catalog):
        small = EffectChain(catalog, max_effects=1)
        with pytest.raises(ChainFull):
            small.load_document({"effects": [{"effectId": "blur"}, {"effectId": "invert"}]})

    def test_all_kinds_enableable(self, catalog):
        big = EffectChain(catalog, max_effects=len(EffectKind))
        for kind in EffectKind:
            big.enable(kind.value)
        assert len(big) == len(EffectKind)
