"""
Lumen — Command Bus
Control-path changes queued for the render thread.

UI/API threads submit commands; the scheduler drains the queue at the start
of each tick, before it snapshots the chain, so a frame is always rendered
against a chain that no other thread is changing. Commands apply in
submission order. Each submit() returns a Future that resolves with the
operation's result or raises its configuration error.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass

from core.errors import LumenError

logger = logging.getLogger(__name__)


class Command(ABC):
    """A queued chain change. Subclasses carry the arguments."""

    @abstractmethod
    def apply(self, chain, presets):
        """Run against ``chain`` (and ``presets``) on the render thread."""


@dataclass
class Enable(Command):
    effect_id: str

    def apply(self, chain, presets):
        return chain.enable(self.effect_id)


@dataclass
class Disable(Command):
    effect_id: str

    def apply(self, chain, presets):
        return chain.disable(self.effect_id)


@dataclass
class SetParameter(Command):
    effect_id: str
    param_name: str
    value: object

    def apply(self, chain, presets):
        return chain.set_parameter(self.effect_id, self.param_name, self.value)


@dataclass
class Reorder(Command):
    effect_id: str
    new_index: int

    def apply(self, chain, presets):
        return chain.reorder(self.effect_id, self.new_index)


@dataclass
class Reset(Command):
    def apply(self, chain, presets):
        return chain.reset()


@dataclass
class ApplyPreset(Command):
    preset_name: str

    def apply(self, chain, presets):
        return presets.apply(self.preset_name)


class CommandBus:
    """FIFO of (command, future) pairs with boundary-only application."""

    def __init__(self, chain, presets=None):
        self._chain = chain
        self._presets = presets
        self._pending: deque = deque()
        self._lock = threading.Lock()

    def submit(self, command: Command) -> Future:
        future = Future()
        with self._lock:
            self._pending.append((command, future))
        return future

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self) -> int:
        """Apply every queued command in order. Returns how many were applied.

        A command that fails resolves its future with the error; the rest
        still run.
        """
        with self._lock:
            batch = list(self._pending)
            self._pending.clear()

        for command, future in batch:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = command.apply(self._chain, self._presets)
            except LumenError as e:
                logger.warning(f"{type(command).__name__} rejected: {e}")
                future.set_exception(e)
            except Exception as e:
                logger.exception(f"{type(command).__name__} failed")
                future.set_exception(e)
            else:
                future.set_result(result)
        return len(batch)

    def clear(self) -> None:
        """Cancel everything still queued."""
        with self._lock:
            batch = list(self._pending)
            self._pending.clear()
        for _, future in batch:
            future.cancel()
