"""Collector events and debugging backends that receive them."""

from __future__ import annotations

import itertools
import json
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, TextIO


@dataclass
class Event:
    """An action that happened inside a collector."""

    type: str
    request_id: int = 0
    collector_id: int = 0
    values: dict[str, str] = field(default_factory=dict)


class Debugger(ABC):
    """Backend that receives collector events."""

    @abstractmethod
    def init(self) -> None:
        """Prepare the backend."""

    @abstractmethod
    def event(self, e: Event) -> None:
        """Receive a collector event."""


@dataclass
class LogDebugger(Debugger):
    """Writes one log line per event, to standard error unless told otherwise."""

    output: Optional[TextIO] = None
    prefix: str = ""
    time_format: Optional[str] = None
    _counter: itertools.count = field(default_factory=lambda: itertools.count(1), init=False, repr=False)
    _start: float = field(default_factory=time.monotonic, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def init(self) -> None:
        self._counter = itertools.count(1)
        self._start = time.monotonic()
        if self.output is None:
            self.output = sys.stderr

    def event(self, e: Event) -> None:
        elapsed = time.monotonic() - self._start
        values = json.dumps(e.values, sort_keys=True, ensure_ascii=False)
        with self._lock:
            number = next(self._counter)
            stamp = f"{time.strftime(self.time_format)} " if self.time_format else ""
            self.output.write(
                f"{self.prefix}{stamp}[{number:06d}] {e.collector_id} "
                f"[{e.request_id:6d} - {e.type}] {values} ({elapsed:.6f}s)\n"
            )
            self.output.flush()