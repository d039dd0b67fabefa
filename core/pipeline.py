"""
Lumen — Effects Pipeline
One object that wires catalog, chain, presets, commands, events, monitor and
scheduler together from a PipelineConfig.

    with EffectsPipeline() as pipe:
        pipe.enable("contrast")
        pipe.set_parameter("contrast", "intensity", 40)
        out = pipe.process_frame(frame)

Direct chain calls (enable, set_parameter, ...) take effect immediately and
raise on bad input. While the scheduler is running, submit() is the way to
change the chain at a frame boundary instead.
"""

import logging

import numpy as np

from core.catalog import build_default_catalog
from core.chain import EffectChain
from core.commands import CommandBus
from core.config import PipelineConfig
from core.cpu_backend import CpuBackend
from core.errors import BackendUnsupported, ShaderCompileError
from core.events import EventBus
from core.gpu_backend import GpuBackend
from core.monitor import PerformanceMonitor
from core.presets import PresetStore
from core.scheduler import FrameScheduler

logger = logging.getLogger(__name__)

CHAIN_SETTINGS_KEY = "chain"


class EffectsPipeline:
    """Facade over the whole effects pipeline.

    Args:
        config: PipelineConfig (defaults if omitted).
        catalog: Prebuilt EffectCatalog; built from config if omitted.
    """

    def __init__(self, config: PipelineConfig | None = None, catalog=None):
        self.config = config or PipelineConfig()
        cfg = self.config
        self.catalog = catalog or build_default_catalog(cfg.disabled_categories)
        self.events = EventBus()
        self.chain = EffectChain(self.catalog, cfg.max_effects_chain, self.events)
        self.presets = PresetStore(self.catalog, self.chain, self.events)
        self.commands = CommandBus(self.chain, self.presets)
        self.monitor = PerformanceMonitor(cfg.target_fps, cfg.smoothing, cfg.overrun_drop_factor)
        self.scheduler = FrameScheduler(
            self.catalog, self.chain,
            monitor=self.monitor,
            events=self.events,
            commands=self.commands,
            target_fps=cfg.target_fps,
            prefer_gpu=cfg.prefer_gpu,
            gpu_device=cfg.gpu_device,
            max_frame_dimension=cfg.max_frame_dimension,
        )
        self._oneshot = None

    # --- chain ---

    def enable(self, effect_id: str):
        return self.chain.enable(effect_id)

    def disable(self, effect_id: str) -> bool:
        return self.chain.disable(effect_id)

    def set_parameter(self, effect_id: str, param_name: str, value):
        return self.chain.set_parameter(effect_id, param_name, value)

    def get_parameter(self, effect_id: str, param_name: str):
        return self.chain.get_parameter(effect_id, param_name)

    def reorder(self, effect_id: str, new_index: int) -> int:
        return self.chain.reorder(effect_id, new_index)

    def move(self, effect_id: str, delta: int) -> int:
        return self.chain.move(effect_id, delta)

    def reset(self) -> None:
        self.chain.reset()

    def active_effects(self) -> list[dict]:
        return self.chain.active_effects()

    def available_effects(self, category: str | None = None) -> list[dict]:
        return self.catalog.list_effects(category)

    def submit(self, command):
        """Queue a command for the next frame boundary. Returns a Future."""
        return self.commands.submit(command)

    def subscribe(self, event_type, handler):
        return self.events.subscribe(event_type, handler)

    # --- presets ---

    def apply_preset(self, name: str):
        return self.presets.apply(name)

    def save_preset(self, name: str, description: str = "", overwrite: bool = False):
        return self.presets.capture_current(name, description, overwrite)

    def delete_preset(self, name: str) -> None:
        self.presets.delete(name)

    def list_presets(self) -> list[dict]:
        return self.presets.list_presets()

    def save_presets(self, settings) -> None:
        self.presets.save(settings)

    def load_presets(self, settings) -> list[str]:
        return self.presets.load(settings)

    def save_chain(self, settings, key: str = CHAIN_SETTINGS_KEY) -> None:
        settings.save(key, self.chain.to_document())

    def restore_chain(self, settings, key: str = CHAIN_SETTINGS_KEY) -> bool:
        """Load a saved chain. Returns False when nothing was saved under ``key``."""
        document = settings.load(key)
        if document is None:
            return False
        self.chain.load_document(document)
        return True

    # --- rendering ---

    def start(self, source, consumer, run_loop: bool = True) -> None:
        self.scheduler.start(source, consumer, run_loop)

    def tick(self) -> bool:
        return self.scheduler.tick()

    def pause(self) -> None:
        self.scheduler.pause()

    def resume(self) -> None:
        self.scheduler.resume()

    def stop(self) -> None:
        self.scheduler.stop()

    def process_frame(self, frame: np.ndarray) -> np.ndarray:
        """Render one frame through the current chain on a CPU backend.

        Runs outside the scheduler: no commands are drained and no timing is
        recorded. Returns a new array.
        """
        h, w = frame.shape[:2]
        backend = self._oneshot
        if backend is None:
            backend = self._oneshot = CpuBackend(self.catalog, self.config.max_frame_dimension)
        if backend.resolution != (w, h):
            backend.initialize(w, h)
        return backend.process(frame, self.chain.snapshot()).to_array().copy()

    def open_backend(self, kind: str, width: int, height: int):
        """Initialized backend for standalone rendering.

        ``kind`` is "cpu", "gpu" (errors propagate) or "auto" (GPU, falling
        back to CPU). The caller owns the result and must tear it down.
        """
        cfg = self.config
        if kind in ("gpu", "auto"):
            gpu = GpuBackend(self.catalog, cfg.gpu_device, cfg.max_frame_dimension)
            try:
                gpu.initialize(width, height)
                return gpu
            except (BackendUnsupported, ShaderCompileError) as e:
                gpu.teardown()
                if kind == "gpu":
                    raise
                logger.warning(f"GPU backend unavailable ({e}); using CPU")
        elif kind != "cpu":
            raise ValueError(f"Unknown backend '{kind}' (expected auto, cpu or gpu)")
        cpu = CpuBackend(self.catalog, cfg.max_frame_dimension)
        cpu.initialize(width, height)
        return cpu

    def performance_stats(self) -> dict:
        stats = self.monitor.stats()
        stats["backend"] = self.scheduler.backend_name
        stats["state"] = self.scheduler.state.value
        stats["active_effects"] = len(self.chain)
        return stats

    # --- lifecycle ---

    def close(self) -> None:
        self.scheduler.stop()
        self.commands.clear()
        if self._oneshot is not None:
            self._oneshot.teardown()
            self._oneshot = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
