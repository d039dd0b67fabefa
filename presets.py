"""
Lumen -- Built-in Presets
Curated effect chains shipped with the pipeline.

Each preset is a recipe: a named chain of effects with tuned parameters
that produce a specific look when applied in sequence. Applying a preset
replaces whatever chain is currently active.
"""

BUILT_IN_PRESETS = [
    {
        "name": "cinematic",
        "description": "Film-like grade: a touch more contrast, muted colour, "
                       "soft corners and lifted midtones.",
        "effects": [
            {"name": "contrast", "params": {"intensity": 15}},
            {"name": "saturation", "params": {"intensity": -10}},
            {"name": "vignette", "params": {"intensity": 30, "size": 70}},
            {"name": "gamma", "params": {"gamma": 1.2}},
        ],
    },
    {
        "name": "vintage",
        "description": "Old film stock. Sepia toning, grain and heavy corners.",
        "effects": [
            {"name": "sepia", "params": {"intensity": 40}},
            {"name": "noise", "params": {"intensity": 15, "noise_type": "white"}},
            {"name": "vignette", "params": {"intensity": 50, "size": 60}},
            {"name": "contrast", "params": {"intensity": 20}},
        ],
    },
    {
        "name": "dramatic",
        "description": "High contrast, punchy colour and a drop shadow for depth.",
        "effects": [
            {"name": "contrast", "params": {"intensity": 40}},
            {"name": "brightness", "params": {"intensity": -10}},
            {"name": "saturation", "params": {"intensity": 25}},
            {"name": "shadow", "params": {"offset_x": 3, "offset_y": 3, "blur": 8, "opacity": 30}},
        ],
    },
    {
        "name": "soft",
        "description": "Soft & dreamy. Slight blur, lifted shadows and a gentle glow.",
        "effects": [
            {"name": "blur", "params": {"radius": 1.5}},
            {"name": "brightness", "params": {"intensity": 10}},
            {"name": "contrast", "params": {"intensity": -15}},
            {"name": "glow", "params": {"intensity": 20, "radius": 3}},
        ],
    },
    {
        "name": "blackwhite",
        "description": "Classic black & white with a little extra punch.",
        "effects": [
            {"name": "grayscale", "params": {"intensity": 100}},
            {"name": "contrast", "params": {"intensity": 25}},
            {"name": "brightness", "params": {"intensity": 5}},
        ],
    },
    {
        "name": "cyberpunk",
        "description": "Neon future: flipped hues, saturated colour and bloom.",
        "effects": [
            {"name": "hue", "params": {"rotation": 180}},
            {"name": "saturation", "params": {"intensity": 50}},
            {"name": "contrast", "params": {"intensity": 30}},
            {"name": "glow", "params": {"intensity": 40, "radius": 5}},
        ],
    },
]
