"""
Lumen — Performance Monitor
Frame-time statistics for the scheduler.

Only aggregates are retained: an exponential moving average of processing
time (avg = avg * 0.9 + sample * 0.1, starting from 0), the last sample, and
counters. Overruns are recorded, never acted upon.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_SMOOTHING = 0.9
DEFAULT_DROP_FACTOR = 2.0
FPS_SAMPLE_SIZE = 30
FPS_MIN_SAMPLES = 5


@dataclass(frozen=True)
class PerformanceSample:
    frame_processing_time_ms: float
    effects_applied: int
    timestamp: float = field(default_factory=time.time)


class PerformanceMonitor:
    """Thread-safe frame-time aggregator.

    Args:
        target_fps: Sets the per-frame budget (1000 / target_fps ms).
        smoothing: EMA weight of the previous average.
        drop_factor: A frame over ``drop_factor`` x budget counts as dropped.
    """

    def __init__(self, target_fps: float = 30.0, smoothing: float = DEFAULT_SMOOTHING,
                 drop_factor: float = DEFAULT_DROP_FACTOR):
        if target_fps <= 0:
            raise ValueError(f"target_fps must be > 0, got {target_fps}")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        self._lock = threading.Lock()
        self.target_fps = float(target_fps)
        self.smoothing = smoothing
        self.drop_factor = drop_factor
        self._tick_times: deque[float] = deque(maxlen=FPS_SAMPLE_SIZE)
        self.reset()

    @property
    def budget_ms(self) -> float:
        return 1000.0 / self.target_fps

    def reset(self) -> None:
        with self._lock:
            self.average_frame_time = 0.0
            self.frame_processing_time = 0.0
            self.effects_applied = 0
            self.frames_processed = 0
            self.overrun_frames = 0
            self.dropped_frames = 0
            self.frame_errors = 0
            self._tick_times.clear()

    def record(self, sample: PerformanceSample) -> None:
        t = sample.frame_processing_time_ms
        with self._lock:
            self.frame_processing_time = t
            self.effects_applied = sample.effects_applied
            self.average_frame_time = (
                self.average_frame_time * self.smoothing + t * (1.0 - self.smoothing)
            )
            self.frames_processed += 1
            self._tick_times.append(sample.timestamp)
            budget = self.budget_ms
            if t > budget:
                self.overrun_frames += 1
                if t > budget * self.drop_factor:
                    self.dropped_frames += 1
                    logger.warning(f"Frame took {t:.1f}ms (budget {budget:.1f}ms)")

    def record_time(self, elapsed_ms: float, effects_applied: int) -> None:
        self.record(PerformanceSample(elapsed_ms, effects_applied))

    def record_error(self) -> None:
        """A frame whose output was suppressed by an error."""
        with self._lock:
            self.frame_errors += 1
            self.dropped_frames += 1

    @property
    def sustained_overrun(self) -> bool:
        with self._lock:
            return self.frames_processed > 0 and self.average_frame_time > self.budget_ms

    @property
    def measured_fps(self) -> float:
        """Output rate over the last few frames (0 until enough samples)."""
        with self._lock:
            times = list(self._tick_times)
        if len(times) < FPS_MIN_SAMPLES:
            return 0.0
        span = times[-1] - times[0]
        if span <= 0:
            return 0.0
        return (len(times) - 1) / span

    def stats(self) -> dict:
        fps = self.measured_fps
        overrun = self.sustained_overrun
        with self._lock:
            return {
                "average_frame_time": self.average_frame_time,
                "frame_processing_time": self.frame_processing_time,
                "effects_applied": self.effects_applied,
                "frames_processed": self.frames_processed,
                "overrun_frames": self.overrun_frames,
                "dropped_frames": self.dropped_frames,
                "frame_errors": self.frame_errors,
                "budget_ms": self.budget_ms,
                "target_fps": self.target_fps,
                "measured_fps": fps,
                "sustained_overrun": overrun,
            }
