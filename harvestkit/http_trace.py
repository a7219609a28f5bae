"""Timing of connection set-up and first response byte for HTTP requests."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import requests
from requests.adapters import HTTPAdapter


@dataclass
class HTTPTrace:
    """Durations, in seconds, measured while a request is made."""

    connect_duration: float = 0.0
    first_byte_duration: float = 0.0
    _start: float = field(default=0.0, repr=False)
    _connect: float = field(default=0.0, repr=False)

    def connect_start(self) -> None:
        self._connect = time.monotonic()

    def connect_done(self) -> None:
        self.connect_duration = time.monotonic() - self._connect

    def get_conn(self) -> None:
        self._start = time.monotonic()

    def got_first_response_byte(self) -> None:
        self.first_byte_duration = time.monotonic() - self._start

    def with_trace(self, session: requests.Session) -> requests.Session:
        """Make ``session`` record its timings into this trace and return it."""
        adapter = _TracingAdapter(self)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session


def _traced_connect(base, trace: HTTPTrace):
    def connect(self) -> None:
        trace.connect_start()
        try:
            base.connect(self)
        finally:
            trace.connect_done()

    return connect


class _TracingAdapter(HTTPAdapter):
    def __init__(self, trace: HTTPTrace) -> None:
        self._trace = trace
        super().__init__()

    def init_poolmanager(self, *args, **kwargs) -> None:
        super().init_poolmanager(*args, **kwargs)
        classes = {}
        for scheme, pool_cls in self.poolmanager.pool_classes_by_scheme.items():
            base_conn = pool_cls.ConnectionCls
            conn_cls = type(
                f"Traced{base_conn.__name__}",
                (base_conn,),
                {"connect": _traced_connect(base_conn, self._trace)},
            )
            classes[scheme] = type(
                f"Traced{pool_cls.__name__}", (pool_cls,), {"ConnectionCls": conn_cls}
            )
        self.poolmanager.pool_classes_by_scheme = classes

    def send(self, request, stream=False, **kwargs):
        self._trace.get_conn()
        # Streaming returns as soon as the headers arrive; the session reads
        # the body afterwards when the caller did not ask for a stream.
        response = super().send(request, stream=True, **kwargs)
        self._trace.got_first_response_byte()
        return response