"""
Lumen -- Preset & Chain Documents

Pydantic models for the portable JSON shapes the pipeline reads and writes:
preset libraries (export/import) and saved chains (save-state).

Wire shape (keys are camelCase on disk):

    {"version": 1,
     "presets": [{"name": "...", "description": "...",
                  "effects": [{"effectId": "contrast", "parameters": {...}}]}]}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.errors import InvalidDocument

DOCUMENT_VERSION = 1


class EffectEntryDoc(BaseModel):
    """One stage of a chain: which effect, with which parameter values."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    effect_id: str = Field(
        alias="effectId",
        min_length=1,
        description="Registered effect id, e.g. 'contrast'.",
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameter values; omitted parameters take schema defaults.",
    )


class PresetDoc(BaseModel):
    """A named, ordered list of effect entries."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    effects: list[EffectEntryDoc] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_effects(self) -> "PresetDoc":
        ids = [e.effect_id for e in self.effects]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"Preset '{self.name}' lists effects more than once: {', '.join(dupes)}")
        return self


class PresetLibraryDoc(BaseModel):
    """Export/import document for a set of presets."""
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = DOCUMENT_VERSION
    presets: list[PresetDoc] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "PresetLibraryDoc":
        names = [p.name for p in self.presets]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate preset names: {', '.join(dupes)}")
        return self


class ChainDoc(BaseModel):
    """Save-state for the live chain."""
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = DOCUMENT_VERSION
    effects: list[EffectEntryDoc] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_effects(self) -> "ChainDoc":
        ids = [e.effect_id for e in self.effects]
        if len(ids) != len(set(ids)):
            raise ValueError("Chain lists an effect more than once")
        return self


def _parse(model, data):
    if isinstance(data, model):
        return data
    try:
        if isinstance(data, (str, bytes)):
            return model.model_validate_json(data)
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidDocument(f"Invalid {model.__name__}: {e}") from e


def parse_preset_library(data) -> PresetLibraryDoc:
    """Validate a preset library from a dict, JSON string or model."""
    return _parse(PresetLibraryDoc, data)


def parse_chain(data) -> ChainDoc:
    """Validate a saved chain from a dict, JSON string or model."""
    return _parse(ChainDoc, data)


def dump(doc: BaseModel) -> dict:
    """Plain-dict wire form (camelCase keys)."""
    return doc.model_dump(mode="json", by_alias=True)
