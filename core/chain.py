"""
Lumen — Effect Chain
Ordered, capped list of active effects with their parameter values.

All mutations come from the control path and hold the chain lock; the
scheduler only ever reads through snapshot(), which copies the chain under
the same lock. A multi-step change wrapped in batch() is therefore seen by
the renderer either completely or not at all.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from core.documents import ChainDoc, EffectEntryDoc, dump, parse_chain
from core.errors import ChainFull, EffectNotActive
from core.events import ChainReset, EffectReordered, EffectToggled, ParameterChanged

logger = logging.getLogger(__name__)

DEFAULT_MAX_EFFECTS = 10


@dataclass(frozen=True)
class ChainStage:
    """One frozen stage of a chain snapshot."""
    effect_id: str
    params: Mapping


class ActiveEffect:
    """An effect instance in the chain. Params are always within bounds."""

    __slots__ = ("effect_id", "params")

    def __init__(self, effect_id: str, params: dict):
        self.effect_id = effect_id
        self.params = params

    def __repr__(self):
        return f"ActiveEffect({self.effect_id!r}, {self.params!r})"


def _stage(effect: ActiveEffect) -> ChainStage:
    return ChainStage(effect.effect_id, MappingProxyType(dict(effect.params)))


class EffectChain:
    """Ordered effect chain (no duplicates, max ``max_effects`` entries).

    Args:
        catalog: EffectCatalog the ids are resolved against.
        max_effects: Capacity. Enabling past it raises ChainFull.
        events: Optional EventBus for change notifications.
    """

    def __init__(self, catalog, max_effects: int = DEFAULT_MAX_EFFECTS, events=None):
        if max_effects < 1:
            raise ValueError(f"max_effects must be >= 1, got {max_effects}")
        self._catalog = catalog
        self._validator = catalog.validator
        self._max = max_effects
        self._events = events
        self._lock = threading.RLock()
        self._effects: list[ActiveEffect] = []
        self.version = 0

    @property
    def max_effects(self) -> int:
        return self._max

    def _emit(self, event):
        if self._events is not None:
            self._events.emit(event)

    def _find(self, effect_id: str) -> int:
        for i, effect in enumerate(self._effects):
            if effect.effect_id == effect_id:
                return i
        return -1

    def _require(self, effect_id: str) -> int:
        i = self._find(effect_id)
        if i < 0:
            raise EffectNotActive(effect_id)
        return i

    # --- mutations ---

    def enable(self, effect_id: str) -> ChainStage:
        """Append ``effect_id`` with default params. No-op if already active.

        Returns a frozen copy of the stage; change values through set_parameter().
        """
        definition = self._catalog.lookup(effect_id)
        with self._lock:
            i = self._find(effect_id)
            if i >= 0:
                return _stage(self._effects[i])
            if len(self._effects) >= self._max:
                raise ChainFull(self._max)
            effect = ActiveEffect(effect_id, definition.defaults())
            self._effects.append(effect)
            self.version += 1
            count = len(self._effects)
            stage = _stage(effect)
        logger.debug(f"Enabled '{effect_id}' ({count}/{self._max})")
        self._emit(EffectToggled(effect_id=effect_id, enabled=True, active_count=count))
        return stage

    def disable(self, effect_id: str) -> bool:
        """Remove ``effect_id``. Returns False (and does nothing) if it wasn't active."""
        with self._lock:
            i = self._find(effect_id)
            if i < 0:
                return False
            del self._effects[i]
            self.version += 1
            count = len(self._effects)
        self._emit(EffectToggled(effect_id=effect_id, enabled=False, active_count=count))
        return True

    def set_parameter(self, effect_id: str, param_name: str, value):
        """Clamp/validate ``value`` and store it. Returns the stored value."""
        with self._lock:
            i = self._require(effect_id)
            stored = self._validator.validate(effect_id, param_name, value)
            self._effects[i].params[param_name] = stored
            self.version += 1
        self._emit(ParameterChanged(effect_id=effect_id, param_name=param_name, value=stored))
        return stored

    def get_parameter(self, effect_id: str, param_name: str):
        with self._lock:
            i = self._require(effect_id)
            self._validator.spec(effect_id, param_name)
            return self._effects[i].params[param_name]

    def reorder(self, effect_id: str, new_index: int) -> int:
        """Move ``effect_id`` to ``new_index``; returns the index it ended up at.

        Negative indices count from the end; out-of-range indices are clamped.
        """
        with self._lock:
            n = len(self._effects)
            if new_index < 0:
                new_index += n
            return self._move_to(effect_id, new_index)

    def move(self, effect_id: str, delta: int) -> int:
        """Move ``effect_id`` up (negative) or down (positive) by ``delta`` slots."""
        with self._lock:
            return self._move_to(effect_id, self._require(effect_id) + delta)

    def _move_to(self, effect_id, target):
        i = self._require(effect_id)
        target = max(0, min(len(self._effects) - 1, target))
        if target != i:
            effect = self._effects.pop(i)
            self._effects.insert(target, effect)
            self.version += 1
            self._emit(EffectReordered(effect_id=effect_id, index=target))
        return target

    def reset(self) -> None:
        """Remove every effect."""
        with self._lock:
            self._effects.clear()
            self.version += 1
        self._emit(ChainReset())

    @contextmanager
    def batch(self):
        """Hold the chain lock across several mutations."""
        with self._lock:
            yield self

    # --- reads ---

    def snapshot(self) -> tuple:
        """Immutable copy of the chain for one render tick."""
        with self._lock:
            return tuple(_stage(e) for e in self._effects)

    def is_active(self, effect_id: str) -> bool:
        with self._lock:
            return self._find(effect_id) >= 0

    def active_effects(self) -> list[dict]:
        return [{"effect_id": s.effect_id, "params": dict(s.params)} for s in self.snapshot()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._effects)

    def __iter__(self):
        return iter(self.snapshot())

    # --- save-state ---

    def to_document(self) -> dict:
        doc = ChainDoc(effects=[
            EffectEntryDoc(effect_id=s.effect_id, parameters=dict(s.params))
            for s in self.snapshot()
        ])
        return dump(doc)

    def load_document(self, document) -> None:
        """Replace the chain with a saved one. Validated fully before any change."""
        doc = parse_chain(document)
        for entry in doc.effects:
            self._validator.validate_all(entry.effect_id, entry.parameters)
        if len(doc.effects) > self._max:
            raise ChainFull(self._max)
        with self.batch():
            self.reset()
            for entry in doc.effects:
                self.enable(entry.effect_id)
                for name, value in entry.parameters.items():
                    self.set_parameter(entry.effect_id, name, value)
        logger.info(f"Loaded chain with {len(doc.effects)} effects")
