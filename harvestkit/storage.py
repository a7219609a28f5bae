"""Storage of visited request ids and cookies for a collector."""

from __future__ import annotations

import email.message
import threading
import urllib.request
from abc import ABC, abstractmethod
from http.cookiejar import CookieJar
from http.cookies import CookieError, Morsel, SimpleCookie
from typing import Iterable


class Storage(ABC):
    """Backend holding a collector's visited requests and cookies."""

    @abstractmethod
    def init(self) -> None:
        """Prepare the storage for use."""

    @abstractmethod
    def visited(self, request_id: int) -> None:
        """Record that the request with ``request_id`` was visited."""

    @abstractmethod
    def is_visited(self, request_id: int) -> bool:
        """Tell whether ``request_id`` was recorded as visited."""

    @abstractmethod
    def cookies(self, url: str) -> str:
        """Return the cookies for ``url``, one ``name=value`` per line."""

    @abstractmethod
    def set_cookies(self, url: str, cookies: str) -> None:
        """Store newline-separated Set-Cookie lines received from ``url``."""


class _HeaderResponse:
    """Minimal response object exposing headers the way CookieJar expects."""

    def __init__(self, headers: email.message.Message) -> None:
        self._headers = headers

    def info(self) -> email.message.Message:
        return self._headers


class InMemoryStorage(Storage):
    """Keeps visited ids and cookies in memory only."""

    def __init__(self) -> None:
        self._visited: set[int] | None = None
        self._lock: threading.Lock | None = None
        self._jar: CookieJar | None = None
        self.init()

    def init(self) -> None:
        if self._visited is None:
            self._visited = set()
        if self._lock is None:
            self._lock = threading.Lock()
        if self._jar is None:
            self._jar = CookieJar()

    def visited(self, request_id: int) -> None:
        with self._lock:
            self._visited.add(request_id)

    def is_visited(self, request_id: int) -> bool:
        with self._lock:
            return request_id in self._visited

    def cookies(self, url: str) -> str:
        request = urllib.request.Request(url)
        self._jar.add_cookie_header(request)
        header = request.get_header("Cookie", "") or ""
        return "\n".join(part for part in header.split("; ") if part)

    def set_cookies(self, url: str, cookies: str) -> None:
        headers = email.message.Message()
        for line in cookies.split("\n"):
            if line.strip():
                headers["Set-Cookie"] = line
        self._jar.extract_cookies(_HeaderResponse(headers), urllib.request.Request(url))

    def close(self) -> None:
        """Release the memory held by visited ids and cookies."""
        with self._lock:
            self._visited.clear()
        self._jar.clear()


def stringify_cookies(cookies: Iterable[Morsel]) -> str:
    """Serialize cookies into Set-Cookie lines joined by newlines."""
    return "\n".join(cookie.OutputString() for cookie in cookies)


def unstringify_cookies(text: str) -> list[Morsel]:
    """Parse newline-separated Set-Cookie lines; invalid lines are skipped."""
    result: list[Morsel] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        parsed = SimpleCookie()
        try:
            parsed.load(line)
        except CookieError:
            continue
        result.extend(parsed.values())
    return result


def contains_cookie(cookies: Iterable[Morsel], name: str) -> bool:
    """Tell whether a cookie called ``name`` is among ``cookies``."""
    return any(cookie.key == name for cookie in cookies)