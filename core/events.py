"""
Lumen — Event Bus
In-process pub/sub for chain and pipeline lifecycle notifications.

Handlers run synchronously on the emitting thread (control thread for chain
events, scheduler thread for processing events). A handler that raises is
logged and skipped; it never breaks delivery to the others or the emitter.
"""

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Callable, ClassVar

logger = logging.getLogger(__name__)

ANY = "*"


@dataclass(frozen=True)
class Event:
    type: ClassVar[str] = "event"

    def to_dict(self) -> dict:
        return {"type": self.type, **asdict(self)}


@dataclass(frozen=True)
class EffectToggled(Event):
    type: ClassVar[str] = "effect-toggled"
    effect_id: str
    enabled: bool
    active_count: int


@dataclass(frozen=True)
class ParameterChanged(Event):
    type: ClassVar[str] = "parameter-changed"
    effect_id: str
    param_name: str
    value: object


@dataclass(frozen=True)
class EffectReordered(Event):
    type: ClassVar[str] = "effect-reordered"
    effect_id: str
    index: int


@dataclass(frozen=True)
class ChainReset(Event):
    type: ClassVar[str] = "chain-reset"


@dataclass(frozen=True)
class PresetApplied(Event):
    type: ClassVar[str] = "preset-applied"
    preset_name: str


@dataclass(frozen=True)
class ProcessingStarted(Event):
    type: ClassVar[str] = "processing-started"
    width: int
    height: int
    backend: str


@dataclass(frozen=True)
class ProcessingStopped(Event):
    type: ClassVar[str] = "processing-stopped"


@dataclass(frozen=True)
class BackendFallback(Event):
    type: ClassVar[str] = "backend-fallback"
    from_backend: str
    to_backend: str
    reason: str


@dataclass(frozen=True)
class FrameErrorEvent(Event):
    type: ClassVar[str] = "frame-error"
    message: str
    frame_index: int


@dataclass(frozen=True)
class InitializationError(Event):
    type: ClassVar[str] = "initialization-error"
    message: str


class EventBus:
    """Thread-safe synchronous event bus.

    ``subscribe(event_type, handler)`` registers for one event type, or for
    everything with ``"*"``, and returns a callable that unsubscribes.
    """

    def __init__(self):
        self._handlers: dict[str, list[Callable]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type, handler: Callable) -> Callable[[], None]:
        if isinstance(event_type, type) and issubclass(event_type, Event):
            event_type = event_type.type
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe():
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def emit(self, event: Event) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.type, ())) + list(self._handlers.get(ANY, ()))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.type}")
        logger.debug(f"Emitted event: {event.type}")

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
