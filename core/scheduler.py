"""
Lumen — Frame Scheduler
Drives source → backend → consumer at a target frame rate.

State machine: IDLE → RUNNING ⇄ PAUSED → STOPPED (start() again from STOPPED).

Each tick, in order: drain queued commands, pull a frame, reallocate if the
resolution changed, snapshot the chain, render, hand the result to the
consumer, record timing. A tick that fails suppresses only its own output;
the loop keeps going. stop() waits for the in-flight tick before tearing the
backend down, so a backend is never released mid-frame.
"""

import logging
import threading
import time
from enum import Enum

from core.backend import frame_array
from core.cpu_backend import CpuBackend
from core.errors import (
    BackendUnsupported,
    PipelineInitializationError,
    SchedulerStateError,
    ShaderCompileError,
)
from core.events import (
    BackendFallback,
    FrameErrorEvent,
    InitializationError,
    ProcessingStarted,
    ProcessingStopped,
)
from core.gpu_backend import GpuBackend
from core.monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

# Errors that mean "this backend can't run here", as opposed to a bug
_FALLBACK_ERRORS = (BackendUnsupported, ShaderCompileError)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class FrameScheduler:
    """Real-time frame loop with GPU→CPU fallback.

    Args:
        catalog: EffectCatalog handed to the backends.
        chain: EffectChain snapshotted once per tick.
        monitor: PerformanceMonitor (one is created from target_fps if omitted).
        events: Optional EventBus for lifecycle and frame-error events.
        commands: Optional CommandBus drained at the start of each tick.
        prefer_gpu: Try the GPU backend first.
        gpu_device: Device preference passed to GpuBackend.
        gpu_factory, cpu_factory: Zero-arg callables building backends.
    """

    def __init__(self, catalog, chain, monitor=None, events=None, commands=None,
                 target_fps: float = 30.0, prefer_gpu: bool = True, gpu_device: str = "auto",
                 max_frame_dimension: int = 8192, gpu_factory=None, cpu_factory=None):
        self._catalog = catalog
        self._chain = chain
        self.monitor = monitor or PerformanceMonitor(target_fps)
        self._events = events
        self._commands = commands
        self.target_fps = float(target_fps)
        self.prefer_gpu = prefer_gpu
        self._gpu_factory = gpu_factory or (
            lambda: GpuBackend(catalog, gpu_device, max_frame_dimension)
        )
        self._cpu_factory = cpu_factory or (
            lambda: CpuBackend(catalog, max_frame_dimension)
        )

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._tick_lock = threading.RLock()
        self._tick_owner = None
        self._stop_event = threading.Event()
        self._thread = None

        self.backend = None
        self._source = None
        self._consumer = None
        self.frame_index = 0

    # --- properties ---

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def backend_name(self) -> str | None:
        return self.backend.name if self.backend is not None else None

    @property
    def running(self) -> bool:
        return self._state in (SchedulerState.RUNNING, SchedulerState.PAUSED)

    def _emit(self, event):
        if self._events is not None:
            self._events.emit(event)

    # --- backend selection ---

    def _init_backend(self, width, height, try_gpu):
        if try_gpu:
            gpu = self._gpu_factory()
            try:
                gpu.initialize(width, height)
                return gpu
            except _FALLBACK_ERRORS as e:
                gpu.teardown()
                logger.warning(f"GPU backend unavailable ({e}); falling back to CPU")
                self._emit(BackendFallback(from_backend="gpu", to_backend="cpu", reason=str(e)))

        cpu = self._cpu_factory()
        try:
            cpu.initialize(width, height)
        except Exception as e:
            cpu.teardown()
            message = f"CPU backend failed to initialize: {e}"
            logger.error(message)
            self._emit(InitializationError(message=message))
            raise PipelineInitializationError(message) from e
        return cpu

    def _reallocate(self, width, height):
        logger.info(f"Resolution changed to {width}x{height}; reallocating {self.backend.name}")
        backend = self.backend
        try:
            backend.initialize(width, height)
        except _FALLBACK_ERRORS as e:
            backend.teardown()
            self.backend = None
            logger.warning(f"{backend.name} backend failed at {width}x{height} ({e})")
            self._emit(BackendFallback(from_backend=backend.name, to_backend="cpu", reason=str(e)))
            self.backend = self._init_backend(width, height, try_gpu=False)

    # --- lifecycle ---

    def start(self, source, consumer, run_loop: bool = True) -> None:
        """Select a backend, allocate at the source resolution and begin ticking.

        With ``run_loop=False`` no thread is started; call tick() yourself.

        Raises:
            SchedulerStateError: Already running.
            PipelineInitializationError: No backend could be initialized.
        """
        with self._state_lock:
            if self._state in (SchedulerState.RUNNING, SchedulerState.PAUSED):
                raise SchedulerStateError(f"Scheduler is already {self._state.value}")
            self._state = SchedulerState.IDLE

        width, height = source.resolution
        self.backend = self._init_backend(width, height, try_gpu=self.prefer_gpu)
        self._source = source
        self._consumer = consumer
        self.frame_index = 0
        self._stop_event.clear()

        with self._state_lock:
            self._state = SchedulerState.RUNNING
        logger.info(f"Processing started at {width}x{height} on {self.backend.name}")
        self._emit(ProcessingStarted(width=width, height=height, backend=self.backend.name))

        if run_loop:
            self._thread = threading.Thread(target=self._run, name="lumen-scheduler", daemon=True)
            self._thread.start()

    def pause(self) -> None:
        with self._state_lock:
            if self._state == SchedulerState.PAUSED:
                return
            if self._state != SchedulerState.RUNNING:
                raise SchedulerStateError(f"Can't pause while {self._state.value}")
            self._state = SchedulerState.PAUSED
        logger.info("Processing paused")

    def resume(self) -> None:
        with self._state_lock:
            if self._state == SchedulerState.RUNNING:
                return
            if self._state != SchedulerState.PAUSED:
                raise SchedulerStateError(f"Can't resume while {self._state.value}")
            self._state = SchedulerState.RUNNING
        logger.info("Processing resumed")

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking and tear the backend down. Safe from any thread.

        Called from inside a tick (e.g. by a consumer), the teardown happens
        as soon as that tick returns.
        """
        with self._state_lock:
            if self._state in (SchedulerState.IDLE, SchedulerState.STOPPED):
                return
            self._stop_event.set()
        if self._tick_owner == threading.get_ident():
            return
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._finish()

    def _finish(self):
        with self._tick_lock:
            with self._state_lock:
                if self._state == SchedulerState.STOPPED:
                    return
                self._state = SchedulerState.STOPPED
            if self.backend is not None:
                self.backend.teardown()
            self._thread = None
        logger.info(f"Processing stopped after {self.frame_index} frames")
        self._emit(ProcessingStopped())

    # --- frame loop ---

    def _run(self):
        interval = 1.0 / self.target_fps
        next_tick = time.perf_counter()
        try:
            while not self._stop_event.is_set():
                self.tick()
                next_tick += interval
                delay = next_tick - time.perf_counter()
                if delay > 0:
                    self._stop_event.wait(delay)
                else:
                    # running behind: don't try to catch up
                    next_tick = time.perf_counter()
        except PipelineInitializationError:
            logger.error("No usable backend after reallocation; stopping")
        except Exception:
            logger.exception("Frame loop crashed")
        finally:
            self._stop_event.set()
            self._finish()

    def tick(self) -> bool:
        """Run one frame. Returns True when a frame was rendered and delivered."""
        with self._tick_lock:
            if self._state in (SchedulerState.IDLE, SchedulerState.STOPPED):
                raise SchedulerStateError(f"Can't tick while {self._state.value}")
            self._tick_owner = threading.get_ident()
            try:
                return self._tick()
            finally:
                self._tick_owner = None
                # manual ticking: nobody else will finish a requested stop
                if self._stop_event.is_set() and self._thread is None:
                    self._finish()

    def _tick(self) -> bool:
        if self._commands is not None:
            self._commands.drain()
        if self._stop_event.is_set() or self._state == SchedulerState.PAUSED:
            return False

        index = self.frame_index
        try:
            frame = self._source.get_frame()
            if frame is None:
                return False
            h, w = frame_array(frame).shape[:2]
            if (w, h) != self.backend.resolution:
                self._reallocate(w, h)

            stages = self._chain.snapshot()
            started = time.perf_counter()
            output = self.backend.process(frame, stages)
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            self._consumer.consume(output)
        except PipelineInitializationError:
            self._stop_event.set()
            raise
        except Exception as e:
            self.frame_index += 1
            logger.exception(f"Frame {index} failed")
            self.monitor.record_error()
            self._emit(FrameErrorEvent(message=str(e), frame_index=index))
            return False

        self.frame_index += 1
        self.monitor.record_time(elapsed_ms, len(stages))
        return True
