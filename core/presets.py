"""
Lumen — Preset Store
Named, immutable snapshots of an effect chain.

Built-in presets come from the catalog. User presets are captured from the
live chain, imported from preset documents, or loaded from settings.
Applying a preset replaces the whole chain in one atomic batch.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from core.documents import (
    EffectEntryDoc,
    PresetDoc,
    PresetLibraryDoc,
    dump,
    parse_preset_library,
)
from core.errors import ChainFull, DuplicatePresetName, UnknownPreset
from core.events import PresetApplied
from core.params import ParameterValidator

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_KEY = "presets"


@dataclass(frozen=True)
class PresetEntry:
    effect_id: str
    params: Mapping = field(default_factory=lambda: MappingProxyType({}))

    def to_doc(self) -> EffectEntryDoc:
        return EffectEntryDoc(effect_id=self.effect_id, parameters=dict(self.params))


@dataclass(frozen=True)
class Preset:
    name: str
    description: str = ""
    entries: tuple = ()
    builtin: bool = False

    @property
    def effect_ids(self) -> list[str]:
        return [e.effect_id for e in self.entries]

    def to_doc(self) -> PresetDoc:
        return PresetDoc(
            name=self.name,
            description=self.description,
            effects=[e.to_doc() for e in self.entries],
        )

    def describe(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "builtin": self.builtin,
            "effects": [{"effect_id": e.effect_id, "params": dict(e.params)} for e in self.entries],
        }


def make_preset(name: str, description: str, effects, validator: ParameterValidator,
                builtin: bool = False) -> Preset:
    """Build a Preset from ``(effect_id, params)`` pairs.

    Every effect id and parameter name is checked against the catalog; values
    are clamped into range here, once, so applying never has to correct them.
    """
    entries = []
    for effect_id, params in effects:
        full = validator.validate_all(effect_id, params)
        clamped = {k: full[k] for k in (params or {})}
        entries.append(PresetEntry(effect_id, MappingProxyType(clamped)))
    return Preset(name=name, description=description, entries=tuple(entries), builtin=builtin)


def preset_from_doc(doc: PresetDoc, validator: ParameterValidator) -> Preset:
    return make_preset(
        doc.name,
        doc.description,
        [(e.effect_id, e.parameters) for e in doc.effects],
        validator,
    )


class PresetStore:
    """Named presets plus apply/capture against one chain.

    Args:
        catalog: EffectCatalog used to validate preset contents.
        chain: The EffectChain presets are applied to and captured from.
        events: Optional EventBus for ``preset-applied``.
    """

    def __init__(self, catalog, chain, events=None):
        self._catalog = catalog
        self._chain = chain
        self._events = events
        self._validator = ParameterValidator(catalog)
        self._lock = threading.RLock()
        self._presets: dict[str, Preset] = {p.name: p for p in catalog.builtin_presets}

    # --- queries ---

    def __contains__(self, name) -> bool:
        with self._lock:
            return name in self._presets

    def __len__(self) -> int:
        with self._lock:
            return len(self._presets)

    def get(self, name: str) -> Preset:
        with self._lock:
            try:
                return self._presets[name]
            except KeyError:
                raise UnknownPreset(name) from None

    def names(self) -> list[str]:
        with self._lock:
            return list(self._presets)

    def list_presets(self) -> list[dict]:
        with self._lock:
            return [p.describe() for p in self._presets.values()]

    # --- apply / capture ---

    def apply(self, name: str) -> Preset:
        """Replace the live chain with the preset's effects, in order.

        The preset is validated against the catalog before the chain is
        touched, so a bad preset leaves the chain as it was.
        """
        preset = self.get(name)
        for entry in preset.entries:
            self._catalog.lookup(entry.effect_id)
            for param, value in entry.params.items():
                self._validator.validate(entry.effect_id, param, value)
        if len(preset.entries) > self._chain.max_effects:
            raise ChainFull(self._chain.max_effects)

        with self._chain.batch():
            self._chain.reset()
            for entry in preset.entries:
                self._chain.enable(entry.effect_id)
                for param, value in entry.params.items():
                    self._chain.set_parameter(entry.effect_id, param, value)

        logger.info(f"Applied preset '{name}' ({len(preset.entries)} effects)")
        if self._events is not None:
            self._events.emit(PresetApplied(preset_name=name))
        return preset

    def capture_current(self, name: str, description: str = "", overwrite: bool = False) -> Preset:
        """Save the live chain (order and every parameter) as a user preset."""
        if not name or not name.strip():
            raise ValueError("Preset name must not be empty")
        stages = self._chain.snapshot()
        preset = Preset(
            name=name,
            description=description,
            entries=tuple(PresetEntry(s.effect_id, s.params) for s in stages),
        )
        with self._lock:
            if name in self._presets and not overwrite:
                raise DuplicatePresetName(name)
            self._presets[name] = preset
        logger.info(f"Captured preset '{name}' ({len(preset.entries)} effects)")
        return preset

    def delete(self, name: str) -> None:
        with self._lock:
            if name not in self._presets:
                raise UnknownPreset(name)
            del self._presets[name]

    # --- documents ---

    def export(self, include_builtin: bool = True) -> dict:
        with self._lock:
            presets = [p for p in self._presets.values() if include_builtin or not p.builtin]
        return dump(PresetLibraryDoc(presets=[p.to_doc() for p in presets]))

    def import_(self, document, overwrite: bool = False) -> list[str]:
        """Add every preset in ``document``. All-or-nothing.

        Returns:
            Names of the imported presets, in document order.
        """
        doc = parse_preset_library(document)
        incoming = [preset_from_doc(p, self._validator) for p in doc.presets]
        with self._lock:
            if not overwrite:
                for preset in incoming:
                    if preset.name in self._presets:
                        raise DuplicatePresetName(preset.name)
            for preset in incoming:
                self._presets[preset.name] = preset
        return [p.name for p in incoming]

    def save(self, settings, key: str = DEFAULT_SETTINGS_KEY) -> None:
        """Persist user presets through a settings store."""
        settings.save(key, self.export(include_builtin=False))

    def load(self, settings, key: str = DEFAULT_SETTINGS_KEY) -> list[str]:
        """Restore user presets saved with save(). Missing key = nothing to load."""
        document = settings.load(key)
        if document is None:
            return []
        return self.import_(document, overwrite=True)
