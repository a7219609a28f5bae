"""A request queue consumed by several worker threads."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from .request import Request, _normalize_url

_log = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100000

Handler = Callable[[Request], Any]


class QueueFullError(Exception):
    """The queue storage reached its maximum size."""

    def __init__(self) -> None:
        super().__init__("Queue MaxSize reached")


class QueueStorage(ABC):
    """Thread-safe backend holding serialized requests."""

    @abstractmethod
    def init(self) -> None:
        """Prepare the storage for use."""

    @abstractmethod
    def add_request(self, data: bytes) -> None:
        """Append a serialized request."""

    @abstractmethod
    def get_request(self) -> Optional[bytes]:
        """Pop the next serialized request, or return None when empty."""

    @abstractmethod
    def queue_size(self) -> int:
        """Return the number of stored requests."""


class InMemoryQueueStorage(QueueStorage):
    """Keeps serialized requests in memory.

    New requests are refused with QueueFullError once ``max_size`` is
    reached; a ``max_size`` of 0 means no limit.
    """

    def __init__(self, max_size: int = 0) -> None:
        self.max_size = max_size
        self._items: deque[bytes] = deque()
        self.init()

    def init(self) -> None:
        self._lock = threading.Lock()

    def add_request(self, data: bytes) -> None:
        with self._lock:
            if self.max_size > 0 and len(self._items) >= self.max_size:
                raise QueueFullError()
            self._items.append(data)

    def get_request(self) -> Optional[bytes]:
        with self._lock:
            return self._items.popleft() if self._items else None

    def queue_size(self) -> int:
        with self._lock:
            return len(self._items)


class Queue:
    """Feeds stored requests to a handler running in ``threads`` worker threads."""

    def __init__(self, threads: int, storage: Optional[QueueStorage] = None) -> None:
        if threads < 1:
            raise ValueError("a queue needs at least one thread")
        if storage is None:
            storage = InMemoryQueueStorage(max_size=DEFAULT_MAX_SIZE)
        storage.init()
        self.threads = threads
        self._storage = storage
        self._cond = threading.Condition()
        self._running = True
        self._in_run = False

    def is_empty(self) -> bool:
        """Tell whether no request is waiting."""
        return self.size() == 0

    def add_url(self, url: str) -> None:
        """Queue a GET request for ``url``; raise ValueError for an invalid URL."""
        request = Request(url=_normalize_url(url), method="GET")
        self._storage.add_request(request.marshal())
        self._wake()

    def add_request(self, request: Request) -> None:
        """Queue ``request``."""
        self._storage.add_request(request.marshal())
        self._wake()

    def size(self) -> int:
        """Return the number of waiting requests."""
        return self._storage.queue_size()

    def run(self, handler: Handler) -> None:
        """Pass queued requests to ``handler`` until the queue is drained or stopped.

        Blocks while requests are waiting or in progress. Requests that
        cannot be decoded are dropped, and exceptions raised by the handler
        are logged and ignored. Raises RuntimeError if a run is already
        in progress.
        """
        with self._cond:
            if self._in_run:
                raise RuntimeError("cannot call duplicate Queue.run")
            self._in_run = True
            self._running = True
        try:
            with ThreadPoolExecutor(max_workers=self.threads) as pool:
                self._loop(handler, pool)
        finally:
            with self._cond:
                self._in_run = False

    def stop(self) -> None:
        """Make a running queue stop dispatching requests."""
        with self._cond:
            self._running = False
            self._cond.notify_all()

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _loop(self, handler: Handler, pool: ThreadPoolExecutor) -> None:
        active = 0

        def finished(_: Future) -> None:
            nonlocal active
            with self._cond:
                active -= 1
                self._cond.notify_all()

        with self._cond:
            while self._running:
                size = self._storage.queue_size()
                if size == 0 and active == 0:
                    return
                if size > 0 and active < self.threads:
                    request = self._load_request()
                    if request is None:
                        continue
                    active += 1
                    pool.submit(self._process, handler, request).add_done_callback(finished)
                    continue
                self._cond.wait()

    def _load_request(self) -> Optional[Request]:
        data = self._storage.get_request()
        if data is None:
            return None
        try:
            return Request.from_json(bytes(data))
        except (ValueError, KeyError, TypeError):
            _log.debug("dropping undecodable queued request", exc_info=True)
            return None

    @staticmethod
    def _process(handler: Handler, request: Request) -> None:
        try:
            handler(request)
        except Exception:
            _log.debug("request handler failed for %s", request.url, exc_info=True)