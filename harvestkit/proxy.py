"""Proxy selection that rotates through a list of proxy URLs."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Optional
from urllib.parse import urlsplit

PROXY_URL_KEY = "ProxyURL"


class EmptyProxyURLError(ValueError):
    """No proxy URL was given."""

    def __init__(self) -> None:
        super().__init__("proxy URL list is empty")


class _RoundRobinSwitcher:
    def __init__(self, proxy_urls: list[str]) -> None:
        self._proxy_urls = proxy_urls
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def __call__(self, request: Optional[Any] = None) -> str:
        with self._lock:
            index = next(self._counter)
        proxy_url = self._proxy_urls[index % len(self._proxy_urls)]
        ctx = getattr(request, "ctx", None)
        if ctx is not None:
            ctx.put(PROXY_URL_KEY, proxy_url)
        return proxy_url


def round_robin_proxy_switcher(*args: str) -> _RoundRobinSwitcher:
    """Return a function giving the next proxy URL on every call.

    The proxy type follows the URL scheme: "http", "https" and "socks5".
    When called with a request that has a context, the chosen proxy URL
    is stored in it under ``PROXY_URL_KEY``.
    Raises EmptyProxyURLError without URLs and ValueError for an invalid one.
    """
    if not args:
        raise EmptyProxyURLError()
    urls = []
    for url in args:
        urlsplit(url)
        urls.append(url)
    return _RoundRobinSwitcher(urls)