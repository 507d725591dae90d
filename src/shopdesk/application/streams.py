from __future__ import annotations

import logging
from typing import Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class Stream(Generic[T]):
    """Push-based value holder. New subscribers get the latest value right away."""

    def __init__(self, initial: object = _UNSET, replay: bool = True):
        self._value = initial
        self._replay = replay
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> Optional[T]:
        return None if self._value is _UNSET else self._value  # type: ignore[return-value]

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._subscribers.append(callback)
        if self._replay and self._value is not _UNSET:
            callback(self._value)  # type: ignore[arg-type]

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def push(self, value: T) -> None:
        self._value = value
        for cb in list(self._subscribers):
            try:
                cb(value)
            except Exception:
                # one broken subscriber must not starve the others
                log.exception("stream_subscriber_failed subscriber=%r", cb)

    def push_if_changed(self, value: T) -> None:
        if self._value is _UNSET or self._value != value:
            self.push(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
