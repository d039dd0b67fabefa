"""
Lumen — Parameter Schema & Validation

Each effect declares an ordered schema of parameters. Values coming from the
control path are corrected, not rejected: numbers are clamped into range.
Only values that can't be interpreted at all raise.
"""

import math
from dataclasses import dataclass, field
from enum import Enum

from core.errors import InvalidParameterValue, UnknownParameter


class ParamKind(str, Enum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    ENUM = "enum"


_TRUE_STRINGS = {"true", "1", "on", "yes"}
_FALSE_STRINGS = {"false", "0", "off", "no"}


def _is_integral(x) -> bool:
    return x is not None and float(x).is_integer()


@dataclass(frozen=True)
class ParamSpec:
    """Declared shape of one effect parameter.

    Numeric specs with integral min, max and step are integer params and
    store ``int`` values.
    """
    name: str
    kind: ParamKind
    default: object
    min: float | None = None
    max: float | None = None
    step: float | None = None
    options: tuple = field(default_factory=tuple)

    @classmethod
    def numeric(cls, name, min, max, default, step=1):
        if min > max:
            raise ValueError(f"{name}: min {min} > max {max}")
        if not (min <= default <= max):
            raise ValueError(f"{name}: default {default} outside [{min}, {max}]")
        return cls(name, ParamKind.NUMERIC, default, min=min, max=max, step=step)

    @classmethod
    def boolean(cls, name, default=False):
        return cls(name, ParamKind.BOOLEAN, bool(default))

    @classmethod
    def choice(cls, name, options, default):
        options = tuple(options)
        if default not in options:
            raise ValueError(f"{name}: default {default!r} not in {options}")
        return cls(name, ParamKind.ENUM, default, options=options)

    @property
    def is_integer(self) -> bool:
        return (
            self.kind == ParamKind.NUMERIC
            and _is_integral(self.min)
            and _is_integral(self.max)
            and _is_integral(self.step)
        )

    def coerce(self, value):
        """Return ``value`` corrected into this parameter's domain."""
        if self.kind == ParamKind.NUMERIC:
            return self._coerce_numeric(value)
        if self.kind == ParamKind.BOOLEAN:
            return self._coerce_boolean(value)
        return self._coerce_enum(value)

    def _coerce_numeric(self, value):
        if isinstance(value, bool):
            raise InvalidParameterValue(f"{self.name}: expected a number, got {value!r}")
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise InvalidParameterValue(f"{self.name}: not a number: {value!r}")
        try:
            value = float(value)
        except OverflowError:
            # integers past float range still clamp to an end of the range
            value = math.inf if value > 0 else -math.inf
        except (TypeError, ValueError):
            raise InvalidParameterValue(f"{self.name}: expected a number, got {value!r}")
        if math.isnan(value):
            raise InvalidParameterValue(f"{self.name}: NaN not allowed")

        value = max(self.min, min(self.max, value))
        if self.is_integer:
            return int(round(value))
        return value

    def _coerce_boolean(self, value):
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in _TRUE_STRINGS:
                return True
            if s in _FALSE_STRINGS:
                return False
        raise InvalidParameterValue(f"{self.name}: expected a boolean, got {value!r}")

    def _coerce_enum(self, value):
        if value in self.options:
            return value
        raise InvalidParameterValue(
            f"{self.name}: {value!r} is not one of {', '.join(map(str, self.options))}"
        )

    def describe(self) -> dict:
        """Plain-data description for listings and UIs."""
        d = {"kind": self.kind.value, "default": self.default}
        if self.kind == ParamKind.NUMERIC:
            d.update(min=self.min, max=self.max, step=self.step)
        elif self.kind == ParamKind.ENUM:
            d["options"] = list(self.options)
        return d


class ParameterValidator:
    """Clamps and validates values against a catalog's parameter schemas."""

    def __init__(self, catalog):
        self._catalog = catalog

    def spec(self, effect_id: str, param_name: str) -> ParamSpec:
        definition = self._catalog.lookup(effect_id)
        try:
            return definition.params[param_name]
        except KeyError:
            raise UnknownParameter(effect_id, param_name) from None

    def validate(self, effect_id: str, param_name: str, value):
        return self.spec(effect_id, param_name).coerce(value)

    def validate_all(self, effect_id: str, params: dict | None = None) -> dict:
        """Full parameter map for an effect: schema defaults overlaid with ``params``."""
        definition = self._catalog.lookup(effect_id)
        values = definition.defaults()
        for name, value in (params or {}).items():
            values[name] = self.validate(effect_id, name, value)
        return values
