from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)

Emit = Callable[[str], None]

FOCUS = "focus"
VISIBLE = "visible"
ONLINE = "online"
TIMER = "timer"
START = "start"


class TriggerSource(Protocol):
    name: str

    def start(self, emit: Emit) -> None: ...
    def stop(self) -> None: ...


class SignalSource:
    """Trigger fired from outside (window focus, page visible, network back)."""

    def __init__(self, name: str):
        self.name = name
        self._emit: Optional[Emit] = None

    @property
    def subscribed(self) -> bool:
        return self._emit is not None

    def start(self, emit: Emit) -> None:
        self._emit = emit

    def stop(self) -> None:
        self._emit = None

    def fire(self) -> None:
        if self._emit is not None:
            self._emit(self.name)


class IntervalSource:
    def __init__(self, period_s: float, name: str = TIMER):
        if period_s <= 0:
            raise ValueError("Interval period must be > 0.")
        self.name = name
        self.period_s = float(period_s)
        self._emit: Optional[Emit] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def start(self, emit: Emit) -> None:
        self.stop()
        self._emit = emit
        self._arm()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._emit = None

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.period_s, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if self._emit is None:
            return
        self._emit(self.name)
        self._arm()


class TriggerAggregator:
    """Merges many trigger sources into one debounced tick.

    The first trigger opens a debounce window; every trigger arriving inside it
    is folded into the same tick. While closed, sources are unsubscribed and
    nothing reaches ``on_tick``.
    """

    def __init__(self, on_tick: Callable[[frozenset[str]], None], debounce_s: float = 0.12):
        self._on_tick = on_tick
        self.debounce_s = max(0.0, float(debounce_s))
        self._sources: list[TriggerSource] = []
        self._open = False
        self._batch: set[str] = set()
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sources(self) -> tuple[TriggerSource, ...]:
        return tuple(self._sources)

    def register(self, source: TriggerSource) -> TriggerSource:
        self._sources.append(source)
        if self._open:
            source.start(self._signal)
        return source

    def open(self) -> None:
        if self._open:
            return
        self._open = True
        for s in self._sources:
            s.start(self._signal)

    def close(self) -> None:
        self._open = False
        for s in self._sources:
            s.stop()
        self._cancel_window()
        self._batch.clear()

    def fire_now(self, name: str) -> None:
        """Emit immediately, folding any trigger already waiting in the window."""
        if not self._open:
            return
        self._cancel_window()
        self._batch.add(name)
        self._flush()

    def _signal(self, name: str) -> None:
        if not self._open:
            return
        self._batch.add(name)
        if self._handle is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(self.debounce_s, self._flush)

    def _cancel_window(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _flush(self) -> None:
        self._handle = None
        batch = frozenset(self._batch)
        self._batch.clear()
        if not batch or not self._open:
            return
        log.debug("trigger_tick sources=%s", ",".join(sorted(batch)))
        self._on_tick(batch)
