"""A small thread-safe key/value store passed between request callbacks."""

from __future__ import annotations

import threading
from typing import Any, Callable


class Context:
    """Carries arbitrary values from a request to its response callbacks."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._lock = threading.RLock()

    def __reduce__(self):
        # A context is never persisted with a request; it is restored empty.
        return (Context, ())

    def put(self, key: str, value: Any) -> None:
        """Store a value of any type under ``key``."""
        with self._lock:
            self._values[key] = value

    def get(self, key: str) -> str:
        """Return the string stored under ``key``, or ``""`` when it is absent.

        Raises TypeError if the stored value is not a string.
        """
        with self._lock:
            if key not in self._values:
                return ""
            value = self._values[key]
        if not isinstance(value, str):
            raise TypeError(f"context value for {key!r} is not a string")
        return value

    def get_any(self, key: str) -> Any:
        """Return the value stored under ``key``, or ``None`` when it is absent."""
        with self._lock:
            return self._values.get(key)

    def for_each(self, fn: Callable[[str, Any], Any]) -> list[Any]:
        """Call ``fn(key, value)`` for every entry and collect the results."""
        with self._lock:
            return [fn(key, value) for key, value in self._values.items()]