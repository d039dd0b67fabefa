#!/usr/bin/env python3
"""
Lumen — Real-Time Video Effects
CLI entry point. Also importable as a library.

Usage:
    python lumen.py list-effects
    python lumen.py info contrast
    python lumen.py apply photo.jpg out.png --effect contrast --param intensity=40
    python lumen.py apply clip.mp4 out.mp4 --preset cinematic --backend gpu
    python lumen.py bench --frames 120 --preset dramatic
    python lumen.py export-presets my_presets.json
"""

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path

# Add project root to path so imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import numpy as np

from core.config import load_config
from core.errors import LumenError
from core.pipeline import EffectsPipeline
from core.safety import SafetyError, preflight
from core.settings import DEFAULT_SETTINGS_DIR, JsonFileSettings
from core.video_io import (
    NullConsumer,
    StaticFrameSource,
    VideoCaptureSource,
    VideoWriterConsumer,
    load_frame,
    save_frame,
)
from effects import CATEGORIES

__version__ = "0.1.0"

MAX_SEARCH_LEN = 200


def _parse_param(text: str, default_effect: str | None):
    """Split ``[effect.]key=value``. Values stay strings; the schema coerces them."""
    if "=" not in text:
        raise ValueError(f"Expected key=value, got '{text}'")
    key, value = text.split("=", 1)
    key = key.strip()
    if "." in key:
        effect_id, key = key.split(".", 1)
    else:
        effect_id = default_effect
    if not effect_id:
        raise ValueError(f"Parameter '{text}' given before any --effect")
    return effect_id, key, value.strip()


def _make_pipeline(args, **overrides) -> EffectsPipeline:
    config = load_config(getattr(args, "config", None), **overrides)
    return EffectsPipeline(config)


def _settings(args) -> JsonFileSettings:
    return JsonFileSettings(args.settings_dir)


def _format_params(params: dict) -> str:
    return ", ".join(f"{k}={v['default']}" for k, v in params.items())


def _unknown_effect(pipeline, name):
    matches = [e["effect_id"] for e in pipeline.catalog.search(name[:MAX_SEARCH_LEN])]
    if matches:
        print(f"Unknown effect: {name}. Did you mean: {', '.join(matches)}?", file=sys.stderr)
    else:
        print(f"Unknown effect: {name}. Use 'lumen list-effects' to see all.", file=sys.stderr)
    return 1


def _build_chain(pipeline, args):
    """Preset first (if any), then each --effect in order, then --param values."""
    if args.preset:
        pipeline.apply_preset(args.preset)
    for name in args.effect or []:
        if name not in pipeline.catalog:
            return _unknown_effect(pipeline, name)
        pipeline.enable(name)
    last = args.effect[-1] if args.effect else None
    for text in args.param or []:
        effect_id, key, value = _parse_param(text, last)
        pipeline.set_parameter(effect_id, key, value)
    return 0


def _describe_chain(pipeline):
    for i, e in enumerate(pipeline.active_effects()):
        params = ", ".join(f"{k}={v}" for k, v in e["params"].items())
        print(f"  {i + 1}. {e['effect_id']:12s} {params}")


def cmd_list_effects(args):
    """List all available effects, grouped by category."""
    pipeline = _make_pipeline(args)
    categories = [args.category] if args.category else pipeline.catalog.list_categories()

    total = 0
    for cat in categories:
        effects = pipeline.available_effects(cat)
        if not effects:
            continue
        total += len(effects)
        print(f"\n  {CATEGORIES.get(cat, cat.upper())} ({len(effects)})")
        print(f"  {'-' * 50}")
        for e in effects:
            print(f"    {e['effect_id']:12s} {e['description']}")
            if not args.compact:
                print(f"    {'':12s}   Params: {_format_params(e['params'])}")

    if not args.category:
        print(f"\n  Total: {total} effects across {len(categories)} categories")
        print(f"  Use --category <name> to filter. Use --compact for names only.")
        print(f"  Use 'lumen info <effect>' for details.\n")
    else:
        print()
    return 0


def cmd_info(args):
    """Show one effect's parameters."""
    pipeline = _make_pipeline(args)
    name = args.effect_name
    if name not in pipeline.catalog:
        return _unknown_effect(pipeline, name)

    d = pipeline.catalog.lookup(name).describe()
    print(f"\n  {d['name']} ({d['effect_id']})")
    print(f"  {'-' * 40}")
    print(f"  Category:    {CATEGORIES.get(d['category'], d['category'].upper())}")
    print(f"  Description: {d['description']}")
    if d["temporal"]:
        print(f"  Temporal:    blends with the previous frame")
    print(f"\n  Parameters:")
    for k, spec in d["params"].items():
        if spec["kind"] == "numeric":
            domain = f"{spec['min']} .. {spec['max']}"
        elif spec["kind"] == "enum":
            domain = " | ".join(spec["options"])
        else:
            domain = "true | false"
        print(f"    {k:12s} = {spec['default']!s:8s} ({domain})")
    print(f"\n  Example:")
    first = next(iter(d["params"]), None)
    example = f" --param {first}={d['params'][first]['default']}" if first else ""
    print(f"    lumen apply in.png out.png --effect {name}{example}\n")
    return 0


def cmd_search(args):
    pipeline = _make_pipeline(args)
    results = pipeline.catalog.search(args.query)
    if not results:
        print(f"No effects matching '{args.query}'.")
        return 0
    print(f"\n  Results for '{args.query}' ({len(results)} found):")
    print(f"  {'-' * 50}")
    for e in results:
        print(f"    {e['effect_id']:12s} [{e['category']:10s}] {e['description']}")
    print()
    return 0


def cmd_list_presets(args):
    pipeline = _make_pipeline(args)
    pipeline.load_presets(_settings(args))
    presets = pipeline.list_presets()
    print(f"\n  Presets ({len(presets)} available)")
    print(f"  {'-' * 50}")
    for p in presets:
        tag = "" if p["builtin"] else " [user]"
        print(f"    {p['name']:14s}{tag} {p['description']}")
        print(f"    {'':14s}   {' > '.join(e['effect_id'] for e in p['effects'])}")
    print(f"\n  Usage: lumen apply in.png out.png --preset <name>\n")
    return 0


def _render_image(pipeline, backend_kind, input_path, output_path):
    frame = load_frame(input_path)
    h, w = frame.shape[:2]
    backend = pipeline.open_backend(backend_kind, w, h)
    try:
        start = time.perf_counter()
        out = backend.process(frame, pipeline.chain.snapshot()).to_array()
        elapsed = (time.perf_counter() - start) * 1000
        save_frame(out, output_path)
    finally:
        backend.teardown()
    print(f"Rendered {w}x{h} on {backend.name} in {elapsed:.1f}ms")


def _render_video(pipeline, backend_kind, input_path, output_path):
    with VideoCaptureSource(input_path) as source:
        w, h = source.resolution
        backend = pipeline.open_backend(backend_kind, w, h)
        stages = pipeline.chain.snapshot()
        start = time.perf_counter()
        try:
            with VideoWriterConsumer(output_path, source.fps, (w, h)) as writer:
                while (frame := source.get_frame()) is not None:
                    writer.consume(backend.process(frame, stages))
        finally:
            backend.teardown()
    elapsed = time.perf_counter() - start
    fps = writer.count / elapsed if elapsed > 0 else 0.0
    print(f"Rendered {writer.count} frames ({w}x{h}) on {backend.name} at {fps:.1f} fps")


def cmd_apply(args):
    """Render an image or video through a preset and/or effects."""
    try:
        info = preflight(args.input, os.path.dirname(os.path.abspath(args.output)))
    except (SafetyError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not args.preset and not args.effect:
        print("Nothing to apply: give --preset and/or --effect.", file=sys.stderr)
        return 1

    pipeline = _make_pipeline(args)
    pipeline.load_presets(_settings(args))
    status = _build_chain(pipeline, args)
    if status:
        return status
    print("Chain:")
    _describe_chain(pipeline)

    if info["is_video"]:
        _render_video(pipeline, args.backend, info["path"], args.output)
    else:
        _render_image(pipeline, args.backend, info["path"], args.output)
    print(f"Output: {args.output}")
    return 0


def cmd_bench(args):
    """Run the scheduler on a synthetic frame and report timing."""
    pipeline = _make_pipeline(args, prefer_gpu=args.backend != "cpu")
    pipeline.load_presets(_settings(args))
    status = _build_chain(pipeline, args)
    if status:
        return status

    rng = np.random.default_rng(0)
    frame = rng.integers(0, 256, (args.height, args.width, 3), dtype=np.uint8)
    consumer = NullConsumer()
    with pipeline:
        pipeline.start(StaticFrameSource(frame), consumer, run_loop=False)
        for _ in range(args.frames):
            pipeline.tick()
        stats = pipeline.performance_stats()

    print(f"\n  Benchmark: {args.frames} frames at {args.width}x{args.height} on {stats['backend']}")
    print(f"  {'-' * 50}")
    print(f"    effects:        {stats['active_effects']}")
    print(f"    avg frame time: {stats['average_frame_time']:.2f}ms "
          f"(budget {stats['budget_ms']:.2f}ms)")
    print(f"    last frame:     {stats['frame_processing_time']:.2f}ms")
    print(f"    overruns:       {stats['overrun_frames']}")
    print(f"    dropped:        {stats['dropped_frames']}")
    print(f"    delivered:      {consumer.count}\n")
    return 0


def cmd_export_presets(args):
    pipeline = _make_pipeline(args)
    pipeline.load_presets(_settings(args))
    document = pipeline.presets.export(include_builtin=args.all)
    Path(args.path).write_text(json.dumps(document, indent=2))
    print(f"Exported {len(document['presets'])} presets to {args.path}")
    return 0


def cmd_import_presets(args):
    settings = _settings(args)
    pipeline = _make_pipeline(args)
    pipeline.load_presets(settings)
    try:
        document = json.loads(Path(args.path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        print(f"Can't read {args.path}: {e}", file=sys.stderr)
        return 1
    names = pipeline.presets.import_(document, overwrite=args.overwrite)
    pipeline.save_presets(settings)
    print(f"Imported {len(names)} presets: {', '.join(names)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lumen",
        description="Lumen — real-time video effects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline activity")
    parser.add_argument("--config", help="Pipeline config JSON file")
    parser.add_argument("--settings-dir", default=str(DEFAULT_SETTINGS_DIR),
                        help="Where user presets are stored")
    sub = parser.add_subparsers(dest="command")

    # list-effects
    p = sub.add_parser("list-effects", help="List all available effects")
    p.add_argument("--category", choices=list(CATEGORIES), help="Filter by category")
    p.add_argument("--compact", action="store_true", help="Compact view (names only)")

    # info
    p = sub.add_parser("info", help="Show detailed info about an effect")
    p.add_argument("effect_name", help="Effect id")

    # search
    p = sub.add_parser("search", help="Search effects by name or description")
    p.add_argument("query", help="Search term")

    # list-presets
    sub.add_parser("list-presets", help="List built-in and saved presets")

    # apply / bench share the chain options
    for name, help_text in (("apply", "Render an image or video through effects"),
                            ("bench", "Benchmark the frame loop on a synthetic frame")):
        p = sub.add_parser(name, help=help_text)
        if name == "apply":
            p.add_argument("input", help="Input image or video")
            p.add_argument("output", help="Output path")
        p.add_argument("--effect", action="append", help="Effect id (repeatable, applied in order)")
        p.add_argument("--param", action="append",
                       help="[effect.]key=value (bare keys go to the last --effect)")
        p.add_argument("--preset", help="Start from a preset")
        p.add_argument("--backend", choices=["auto", "cpu", "gpu"], default="auto")
        if name == "bench":
            p.add_argument("--frames", type=int, default=100)
            p.add_argument("--width", type=int, default=1280)
            p.add_argument("--height", type=int, default=720)

    # presets I/O
    p = sub.add_parser("export-presets", help="Write presets to a JSON file")
    p.add_argument("path", help="Output JSON path")
    p.add_argument("--all", action="store_true", help="Include built-in presets")

    p = sub.add_parser("import-presets", help="Import presets from a JSON file")
    p.add_argument("path", help="Preset library JSON")
    p.add_argument("--overwrite", action="store_true", help="Replace presets with the same name")

    return parser


COMMANDS = {
    "list-effects": cmd_list_effects,
    "info": cmd_info,
    "search": cmd_search,
    "list-presets": cmd_list_presets,
    "apply": cmd_apply,
    "bench": cmd_bench,
    "export-presets": cmd_export_presets,
    "import-presets": cmd_import_presets,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command not in COMMANDS:
        parser.print_help()
        return 0
    try:
        return COMMANDS[args.command](args)
    except (LumenError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
