"""Timer abstraction used for debouncing and the mutation settle window."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay and cancel it."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class Debouncer:
    """Run ``callback`` once, ``delay`` seconds after the last trigger.

    A trigger that arrives while a timer is pending restarts the delay
    instead of scheduling a second run.
    """

    def __init__(self, scheduler: Scheduler, delay: float, callback: Callable[[], None], *, name: str = "") -> None:
        self._scheduler = scheduler
        self._delay = delay
        self._callback = callback
        self._name = name
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._scheduler.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:
            _logger.debug("Debounced callback %s failed", self._name or self._callback, exc_info=True)
