from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Signal(Generic[T]):
    """Thread-safe list of listeners for one kind of event.

    Listeners run on the emitting thread, outside the registry lock. A listener
    that raises is logged and does not prevent the others from running.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._listeners: list[tuple[Callable[[T], None], bool]] = []

    def connect(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register ``listener``. Returns a function that removes it again."""
        return self._add(listener, once=False)

    def connect_once(self, listener: Callable[[T], None]) -> Callable[[], None]:
        return self._add(listener, once=True)

    def disconnect(self, listener: Callable[[T], None]) -> None:
        with self._lock:
            self._listeners = [
                entry for entry in self._listeners if entry[0] is not listener
            ]

    def emit(self, value: T) -> None:
        with self._lock:
            listeners = list(self._listeners)
            self._listeners = [entry for entry in self._listeners if not entry[1]]

        for listener, _once in listeners:
            try:
                listener(value)
            except Exception as e:
                logger.exception(f"Listener for '{self.name}' failed: {e}")

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _add(self, listener: Callable[[T], None], once: bool) -> Callable[[], None]:
        with self._lock:
            self._listeners.append((listener, once))
        return lambda: self.disconnect(listener)
