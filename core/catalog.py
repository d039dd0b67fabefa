"""
Lumen — Effect Catalog
Registry of effect definitions plus the built-in presets.

A definition is checked when it is registered: every parameter the CPU
function accepts must be declared in the schema with a matching kind, and
every uniform the GPU program reads must be declared too. A definition that
passes can be rendered by either backend with any validated parameter map.
"""

import inspect
import logging
import threading

from core.errors import DuplicateEffectId, InvalidEffectDefinition, UnknownEffect
from core.params import ParameterValidator, ParamKind
from core.presets import make_preset
from effects import CATEGORY_ORDER, EffectDefinition, builtin_definitions

logger = logging.getLogger(__name__)

MAX_QUERY_LEN = 200

_ANNOTATION_KINDS = {
    float: ParamKind.NUMERIC,
    int: ParamKind.NUMERIC,
    bool: ParamKind.BOOLEAN,
    str: ParamKind.ENUM,
}

# Arguments the backend supplies itself
_INJECTED = {"previous"}


def check_definition(definition: EffectDefinition) -> None:
    """Raise InvalidEffectDefinition if schema and implementations disagree."""
    eid = definition.effect_id
    if not eid or not isinstance(eid, str):
        raise InvalidEffectDefinition(f"Effect id must be a non-empty string, got {eid!r}")
    if definition.process is None:
        raise InvalidEffectDefinition(f"{eid}: no CPU process function")
    for name, spec in definition.params.items():
        if name != spec.name:
            raise InvalidEffectDefinition(f"{eid}: schema key '{name}' holds spec '{spec.name}'")

    sig = inspect.signature(definition.process)
    args = list(sig.parameters.values())
    if not args:
        raise InvalidEffectDefinition(f"{eid}: process function must take a frame")
    for param in args[1:]:
        if param.name in _INJECTED or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        spec = definition.params.get(param.name)
        if spec is None:
            raise InvalidEffectDefinition(
                f"{eid}: function parameter '{param.name}' is not in the schema"
            )
        expected = _ANNOTATION_KINDS.get(param.annotation)
        if expected is not None and expected != spec.kind:
            raise InvalidEffectDefinition(
                f"{eid}: '{param.name}' is annotated {param.annotation.__name__} "
                f"but declared {spec.kind.value}"
            )

    accepts_all = any(p.kind == p.VAR_KEYWORD for p in args)
    if not accepts_all:
        missing = [n for n in definition.params if n not in sig.parameters]
        if missing:
            raise InvalidEffectDefinition(
                f"{eid}: schema declares parameters the function doesn't take: {', '.join(missing)}"
            )

    if definition.shader is not None:
        unknown = [u for u in definition.shader.uniforms if u not in definition.params]
        if unknown:
            raise InvalidEffectDefinition(
                f"{eid}: GPU program reads undeclared uniforms: {', '.join(unknown)}"
            )


class EffectCatalog:
    """Id → EffectDefinition. Registration is the only mutation."""

    def __init__(self):
        self._definitions: dict[str, EffectDefinition] = {}
        self._lock = threading.Lock()
        self.builtin_presets: tuple = ()
        self.validator = ParameterValidator(self)

    def register(self, definition: EffectDefinition) -> EffectDefinition:
        check_definition(definition)
        with self._lock:
            if definition.effect_id in self._definitions:
                raise DuplicateEffectId(definition.effect_id)
            self._definitions[definition.effect_id] = definition
        logger.debug(f"Registered effect '{definition.effect_id}'")
        return definition

    def lookup(self, effect_id: str) -> EffectDefinition:
        try:
            return self._definitions[effect_id]
        except (KeyError, TypeError):
            raise UnknownEffect(effect_id, self._definitions.keys()) from None

    def __contains__(self, effect_id) -> bool:
        return effect_id in self._definitions

    def __iter__(self):
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)

    def ids(self) -> list[str]:
        return list(self._definitions)

    def list_effects(self, category: str = None) -> list[dict]:
        """List registered effects with their parameter schemas.

        Args:
            category: Optional filter; only return effects in this category.
        """
        return [
            d.describe() for d in self
            if category is None or d.category == category
        ]

    def list_categories(self) -> list[str]:
        """Categories in display order, then any custom ones."""
        present = {d.category for d in self}
        ordered = [c for c in CATEGORY_ORDER if c in present]
        return ordered + sorted(present - set(ordered))

    def search(self, query: str, max_query_len: int = MAX_QUERY_LEN) -> list[dict]:
        """Search effects by id, name or description substring."""
        if len(query) > max_query_len:
            raise ValueError(f"Search query too long (max {max_query_len} chars)")
        q = query.lower()
        return [
            d.describe() for d in self
            if q in d.effect_id or q in d.name.lower() or q in d.description.lower()
        ]

    def load_builtin_presets(self, preset_dicts) -> tuple:
        """Build Preset objects from preset data; skip any that need a missing effect."""
        loaded = []
        for data in preset_dicts:
            ids = [e["name"] for e in data["effects"]]
            absent = [i for i in ids if i not in self]
            if absent:
                logger.info(f"Skipping preset '{data['name']}': unavailable effects {absent}")
                continue
            loaded.append(make_preset(
                data["name"],
                data.get("description", ""),
                [(e["name"], e.get("params", {})) for e in data["effects"]],
                self.validator,
                builtin=True,
            ))
        self.builtin_presets = tuple(loaded)
        return self.builtin_presets


def build_default_catalog(disabled_categories=()) -> EffectCatalog:
    """Catalog with every built-in effect (minus disabled categories) and presets."""
    from presets import BUILT_IN_PRESETS

    catalog = EffectCatalog()
    for definition in builtin_definitions(disabled_categories):
        catalog.register(definition)
    catalog.load_builtin_presets(BUILT_IN_PRESETS)
    logger.info(
        f"Catalog ready: {len(catalog)} effects, {len(catalog.builtin_presets)} presets"
    )
    return catalog
