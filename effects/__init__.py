"""
Lumen — Effects Registry
The closed set of built-in effects and a uniform interface to them.

Every CPU effect is a function: (frame: np.ndarray, **params) -> np.ndarray.
Every effect also has a GPU program in effects/shaders.py implementing the
same formula. Both dispatch tables are keyed by EffectKind and checked for
completeness at import time, so a new kind can't ship half-wired.
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping

from core.params import ParamSpec
from effects import shaders
from effects.artistic import edge_detect, grayscale, posterize, sepia, vintage
from effects.color import (
    brightness,
    contrast,
    gamma_correct,
    hue_rotate,
    invert,
    saturation,
    threshold_filter,
)
from effects.distortion import barrel, blur, fisheye, pixelate, sharpen
from effects.lighting import drop_shadow, glow, vignette
from effects.shaders import GpuProgram
from effects.temporal import motion_blur, zoom_blur
from effects.texture import emboss, noise


class EffectKind(str, Enum):
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    HUE = "hue"
    GAMMA = "gamma"
    SEPIA = "sepia"
    GRAYSCALE = "grayscale"
    VINTAGE = "vintage"
    POSTERIZE = "posterize"
    EDGES = "edges"
    BLUR = "blur"
    SHARPEN = "sharpen"
    PIXELATE = "pixelate"
    FISHEYE = "fisheye"
    BARREL = "barrel"
    NOISE = "noise"
    EMBOSS = "emboss"
    INVERT = "invert"
    THRESHOLD = "threshold"
    VIGNETTE = "vignette"
    GLOW = "glow"
    SHADOW = "shadow"
    MOTION_BLUR = "motion_blur"
    ZOOM_BLUR = "zoom_blur"


@dataclass(frozen=True, eq=False)
class EffectDefinition:
    """Immutable description of one effect: schema plus both implementations."""
    effect_id: str
    name: str
    category: str
    description: str
    params: Mapping[str, ParamSpec]
    process: Callable
    shader: GpuProgram | None = None

    @property
    def temporal(self) -> bool:
        """True when the effect reads the previous frame's stage input."""
        return "previous" in inspect.signature(self.process).parameters

    def defaults(self) -> dict:
        return {name: spec.default for name, spec in self.params.items()}

    def describe(self) -> dict:
        return {
            "effect_id": self.effect_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "params": {name: spec.describe() for name, spec in self.params.items()},
            "temporal": self.temporal,
        }


def _pct(name, default, low=0):
    return ParamSpec.numeric(name, low, 100, default)


# Master registry: kind -> implementation + schema
EFFECTS = {
    # === COLOR ===
    EffectKind.BRIGHTNESS: {
        "fn": brightness,
        "program": shaders.brightness_program,
        "name": "Brightness",
        "category": "color",
        "params": (_pct("intensity", 0, low=-100),),
        "description": "Lighten or darken every channel evenly",
    },
    EffectKind.CONTRAST: {
        "fn": contrast,
        "program": shaders.contrast_program,
        "name": "Contrast",
        "category": "color",
        "params": (_pct("intensity", 0, low=-100),),
        "description": "Stretch or flatten tones around mid-gray",
    },
    EffectKind.SATURATION: {
        "fn": saturation,
        "program": shaders.saturation_program,
        "name": "Saturation",
        "category": "color",
        "params": (_pct("intensity", 0, low=-100),),
        "description": "Boost or drain colour (-100 = grayscale)",
    },
    EffectKind.HUE: {
        "fn": hue_rotate,
        "program": shaders.hue_program,
        "name": "Hue Rotation",
        "category": "color",
        "params": (ParamSpec.numeric("rotation", 0, 360, 0),),
        "description": "Rotate the hue wheel by degrees",
    },
    EffectKind.GAMMA: {
        "fn": gamma_correct,
        "program": shaders.gamma_program,
        "name": "Gamma Correction",
        "category": "color",
        "params": (ParamSpec.numeric("gamma", 0.1, 3.0, 1.0, step=0.1),),
        "description": "Lift (>1) or sink (<1) the midtones",
    },

    # === ARTISTIC ===
    EffectKind.SEPIA: {
        "fn": sepia,
        "program": shaders.sepia_program,
        "name": "Sepia",
        "category": "artistic",
        "params": (_pct("intensity", 50),),
        "description": "Warm brown photographic toning",
    },
    EffectKind.GRAYSCALE: {
        "fn": grayscale,
        "program": shaders.grayscale_program,
        "name": "Grayscale",
        "category": "artistic",
        "params": (_pct("intensity", 100),),
        "description": "Fade towards luma-weighted black and white",
    },
    EffectKind.VINTAGE: {
        "fn": vintage,
        "program": shaders.vintage_program,
        "name": "Vintage",
        "category": "artistic",
        "params": (_pct("intensity", 50), _pct("vignette", 30)),
        "description": "Sepia toning with darkened corners",
    },
    EffectKind.POSTERIZE: {
        "fn": posterize,
        "program": shaders.posterize_program,
        "name": "Posterize",
        "category": "artistic",
        "params": (ParamSpec.numeric("levels", 2, 16, 8),),
        "description": "Reduce each channel to N flat levels",
    },
    EffectKind.EDGES: {
        "fn": edge_detect,
        "program": shaders.edges_program,
        "name": "Edge Detection",
        "category": "artistic",
        "params": (_pct("threshold", 50), ParamSpec.boolean("invert", False)),
        "description": "Sobel edge map, white on black (or inverted)",
    },

    # === DISTORTION ===
    EffectKind.BLUR: {
        "fn": blur,
        "program": shaders.blur_program,
        "name": "Blur",
        "category": "distortion",
        "params": (ParamSpec.numeric("radius", 0, 20, 5, step=0.5),),
        "description": "Gaussian blur",
    },
    EffectKind.SHARPEN: {
        "fn": sharpen,
        "program": shaders.sharpen_program,
        "name": "Sharpen",
        "category": "distortion",
        "params": (_pct("intensity", 50),),
        "description": "Unsharp mask on a 3x3 neighbourhood",
    },
    EffectKind.PIXELATE: {
        "fn": pixelate,
        "program": shaders.pixelate_program,
        "name": "Pixelate",
        "category": "distortion",
        "params": (ParamSpec.numeric("pixel_size", 1, 50, 10),),
        "description": "Chunky mosaic blocks",
    },
    EffectKind.FISHEYE: {
        "fn": fisheye,
        "program": shaders.fisheye_program,
        "name": "Fisheye",
        "category": "distortion",
        "params": (ParamSpec.numeric("strength", 0, 100, 50),),
        "description": "Bulge the centre of the frame outwards",
    },
    EffectKind.BARREL: {
        "fn": barrel,
        "program": shaders.barrel_program,
        "name": "Barrel Distortion",
        "category": "distortion",
        "params": (ParamSpec.numeric("strength", -100, 100, 0),),
        "description": "Lens barrel (positive) or pincushion (negative) distortion",
    },

    # === FILTER ===
    EffectKind.NOISE: {
        "fn": noise,
        "program": shaders.noise_program,
        "name": "Noise",
        "category": "filter",
        "params": (
            _pct("intensity", 25),
            ParamSpec.choice("noise_type", ("white", "colored"), "white"),
            ParamSpec.numeric("seed", 0, 65535, 42),
        ),
        "description": "Seeded film grain, monochrome or per-channel",
    },
    EffectKind.EMBOSS: {
        "fn": emboss,
        "program": shaders.emboss_program,
        "name": "Emboss",
        "category": "filter",
        "params": (_pct("strength", 50),),
        "description": "Raised relief shading",
    },
    EffectKind.INVERT: {
        "fn": invert,
        "program": shaders.invert_program,
        "name": "Invert",
        "category": "filter",
        "params": (_pct("intensity", 100),),
        "description": "Blend towards the colour negative",
    },
    EffectKind.THRESHOLD: {
        "fn": threshold_filter,
        "program": shaders.threshold_program,
        "name": "Threshold",
        "category": "filter",
        "params": (ParamSpec.numeric("threshold", 0, 255, 128),),
        "description": "Hard black/white split on luma",
    },

    # === LIGHTING ===
    EffectKind.VIGNETTE: {
        "fn": vignette,
        "program": shaders.vignette_program,
        "name": "Vignette",
        "category": "lighting",
        "params": (_pct("intensity", 50), _pct("size", 50)),
        "description": "Darken the frame towards its corners",
    },
    EffectKind.GLOW: {
        "fn": glow,
        "program": shaders.glow_program,
        "name": "Glow",
        "category": "lighting",
        "params": (_pct("intensity", 30), ParamSpec.numeric("radius", 1, 20, 5)),
        "description": "Screen-blended bloom around highlights",
    },
    EffectKind.SHADOW: {
        "fn": drop_shadow,
        "program": shaders.shadow_program,
        "name": "Drop Shadow",
        "category": "lighting",
        "params": (
            ParamSpec.numeric("offset_x", -20, 20, 5),
            ParamSpec.numeric("offset_y", -20, 20, 5),
            ParamSpec.numeric("blur", 0, 20, 5),
            _pct("opacity", 50),
        ),
        "description": "Soft offset shadow cast by the frame's dark areas",
    },

    # === MOTION ===
    EffectKind.MOTION_BLUR: {
        "fn": motion_blur,
        "program": shaders.motion_blur_program,
        "name": "Motion Blur",
        "category": "motion",
        "params": (
            ParamSpec.numeric("angle", 0, 360, 0),
            ParamSpec.numeric("distance", 0, 50, 10),
        ),
        "description": "Directional streak with a trail of the previous frame",
    },
    EffectKind.ZOOM_BLUR: {
        "fn": zoom_blur,
        "program": shaders.zoom_blur_program,
        "name": "Zoom Blur",
        "category": "motion",
        "params": (
            _pct("strength", 25),
            _pct("center_x", 50),
            _pct("center_y", 50),
        ),
        "description": "Radial blur rushing towards a centre point",
    },
}

# Category display order and labels
CATEGORIES = {
    "color": "COLOR",
    "artistic": "ARTISTIC",
    "distortion": "DISTORTION",
    "filter": "FILTER",
    "lighting": "LIGHTING",
    "motion": "MOTION",
}

CATEGORY_ORDER = list(CATEGORIES.keys())


def _check_exhaustive():
    missing = [k.value for k in EffectKind if k not in EFFECTS]
    if missing:
        raise RuntimeError(f"Effect kinds without an implementation: {', '.join(missing)}")
    for kind, entry in EFFECTS.items():
        if entry["fn"] is None or entry["program"] is None:
            raise RuntimeError(f"{kind.value}: CPU and GPU implementations are both required")
        if entry["category"] not in CATEGORIES:
            raise RuntimeError(f"{kind.value}: unknown category {entry['category']!r}")


_check_exhaustive()


def builtin_definition(kind) -> EffectDefinition:
    """Build the EffectDefinition for a built-in kind (EffectKind or its id)."""
    kind = EffectKind(kind)
    entry = EFFECTS[kind]
    return EffectDefinition(
        effect_id=kind.value,
        name=entry["name"],
        category=entry["category"],
        description=entry["description"],
        params=MappingProxyType({spec.name: spec for spec in entry["params"]}),
        process=entry["fn"],
        shader=GpuProgram(kind.value, entry["program"]),
    )


def builtin_definitions(disabled_categories=()) -> list[EffectDefinition]:
    """Definitions for every built-in kind, in catalog order."""
    disabled = set(disabled_categories)
    return [
        builtin_definition(kind)
        for kind in EffectKind
        if EFFECTS[kind]["category"] not in disabled
    ]
