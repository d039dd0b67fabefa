"""
Lumen — Pipeline Configuration

Pydantic model for the pipeline's tunables. Values are layered:
defaults ← JSON file ← LUMEN_* environment variables ← keyword overrides.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.errors import ConfigurationError

ENV_PREFIX = "LUMEN_"


class PipelineConfig(BaseModel):
    """Pipeline tunables."""

    model_config = {"extra": "forbid"}

    max_effects_chain: int = Field(
        default=10, ge=1, le=64,
        description="Maximum number of simultaneously active effects",
    )
    target_fps: float = Field(
        default=30.0, gt=0, le=240,
        description="Scheduler tick rate; sets the per-frame budget",
    )
    prefer_gpu: bool = Field(
        default=True,
        description="Try the GPU backend before falling back to CPU",
    )
    gpu_device: str = Field(
        default="auto",
        description="auto (CUDA, then MPS), or an explicit torch device string",
    )
    overrun_drop_factor: float = Field(
        default=2.0, ge=1.0,
        description="Frames slower than this multiple of the budget count as dropped",
    )
    smoothing: float = Field(
        default=0.9, ge=0.0, lt=1.0,
        description="EMA weight of the previous average frame time",
    )
    disabled_categories: list[str] = Field(
        default_factory=list,
        description="Effect categories left out of the catalog",
    )
    max_frame_dimension: int = Field(
        default=8192, ge=16,
        description="Largest accepted frame width or height, in pixels",
    )

    @field_validator("disabled_categories", mode="before")
    @classmethod
    def _split_categories(cls, v):
        # env vars arrive as "color,lighting"
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return v

    @property
    def budget_ms(self) -> float:
        return 1000.0 / self.target_fps


def _from_env(env: Mapping[str, str]) -> dict:
    values = {}
    for name in PipelineConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in env:
            values[name] = env[key]
    return values


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None,
                **overrides) -> PipelineConfig:
    """Build a PipelineConfig from file, environment and overrides.

    Args:
        path: Optional JSON file holding any subset of the fields.
        env: Environment mapping (defaults to os.environ).
        **overrides: Highest-priority values.

    Raises:
        ConfigurationError: Unreadable file or invalid values.
    """
    values = {}
    if path is not None:
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Can't read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {path} must hold a JSON object")
        values.update(data)

    values.update(_from_env(os.environ if env is None else env))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return PipelineConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline config: {e}") from e
