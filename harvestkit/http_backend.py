"""Sending requests with per-domain limits and an optional on-disk cache."""

from __future__ import annotations

import base64
import fnmatch
import gzip
import hashlib
import json
import os
import random
import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urlsplit

import requests
from requests.structures import CaseInsensitiveDict
from requests.utils import get_environ_proxies, select_proxy

from .request import Request
from .response import Response

CheckHeaders = Callable[[Request, int, CaseInsensitiveDict], bool]


class NoPatternError(ValueError):
    """A limit rule has neither a domain regexp nor a domain glob."""

    def __init__(self) -> None:
        super().__init__("no pattern defined in LimitRule")


class AbortedAfterHeadersError(Exception):
    """The header check rejected the response before its body was read."""

    def __init__(self) -> None:
        super().__init__("aborted after receiving response headers")


@dataclass
class LimitRule:
    """Restricts concurrency and pacing of requests to matching domains.

    ``delay`` and ``random_delay`` are in seconds.
    """

    domain_regexp: str = ""
    domain_glob: str = ""
    delay: float = 0.0
    random_delay: float = 0.0
    parallelism: int = 0
    _slots: Optional[threading.BoundedSemaphore] = field(default=None, init=False, repr=False)
    _regexp: Optional[re.Pattern] = field(default=None, init=False, repr=False)
    _glob: Optional[re.Pattern] = field(default=None, init=False, repr=False)

    def init(self) -> None:
        """Compile the patterns; raise NoPatternError if there are none."""
        self._slots = threading.BoundedSemaphore(max(1, self.parallelism))
        has_pattern = False
        if self.domain_regexp:
            self._regexp = re.compile(self.domain_regexp)
            has_pattern = True
        if self.domain_glob:
            self._glob = re.compile(fnmatch.translate(self.domain_glob))
            has_pattern = True
        if not has_pattern:
            raise NoPatternError()

    def match(self, domain: str) -> bool:
        """Tell whether ``domain`` triggers this rule."""
        if self._regexp is not None and self._regexp.search(domain):
            return True
        return self._glob is not None and self._glob.match(domain) is not None

    def _wait(self) -> None:
        self._slots.acquire()

    def _release(self) -> None:
        extra = random.uniform(0, self.random_delay) if self.random_delay else 0.0
        time.sleep(self.delay + extra)
        self._slots.release()


class HTTPBackend:
    """Sends requests through a session, honouring limit rules."""

    def __init__(self) -> None:
        self.limit_rules: list[LimitRule] = []
        self.session: requests.Session = requests.Session()
        self.timeout: float = 10.0
        self._lock = threading.RLock()

    def init(self, jar) -> None:
        """Create a fresh session using cookie jar ``jar`` when given."""
        self.session = requests.Session()
        if jar is not None:
            self.session.cookies = jar
        self.timeout = 10.0
        self._lock = threading.RLock()

    def get_matching_rule(self, domain: str) -> Optional[LimitRule]:
        with self._lock:
            return next((rule for rule in self.limit_rules if rule.match(domain)), None)

    def cache(self, request: Request, body_size: int, check_headers: CheckHeaders,
              cache_dir: str) -> Response:
        """Serve GET requests from ``cache_dir`` when possible, storing fresh results."""
        if (not cache_dir or request.method != "GET"
                or request.headers.get("Cache-Control") == "no-cache"):
            return self.do(request, body_size, check_headers)
        digest = hashlib.sha1(request.url.encode("utf-8")).hexdigest()
        directory = Path(cache_dir) / digest[:2]
        filename = directory / digest
        if filename.exists():
            try:
                cached = _load_cached(filename)
            except (OSError, ValueError, KeyError):
                cached = None
            if cached is not None:
                check_headers(request, cached.status_code, cached.headers)
                if cached.status_code < 500:
                    return cached
        response = self.do(request, body_size, check_headers)
        if response.status_code >= 500:
            return response
        directory.mkdir(mode=0o750, parents=True, exist_ok=True)
        temporary = filename.with_name(filename.name + "~")
        temporary.write_text(json.dumps({
            "StatusCode": response.status_code,
            "Body": base64.b64encode(response.body).decode("ascii"),
            "Headers": dict(response.headers),
            "ProxyURL": response.proxy_url,
        }))
        os.replace(temporary, filename)
        return response

    def do(self, request: Request, body_size: int, check_headers: CheckHeaders) -> Response:
        """Send ``request`` and return its response, read up to ``body_size`` bytes."""
        rule = self.get_matching_rule(request.url)
        if rule is not None:
            rule._wait()
        try:
            return self._send(request, body_size, check_headers)
        finally:
            if rule is not None:
                rule._release()

    def _send(self, request: Request, body_size: int, check_headers: CheckHeaders) -> Response:
        headers = dict(request.headers)
        if request.host:
            headers["Host"] = request.host
        proxies = {**get_environ_proxies(request.url), **self.session.proxies}
        proxy_url = select_proxy(request.url, proxies) or ""
        res = self.session.request(
            request.method, request.url, headers=headers, data=request.body,
            stream=True, timeout=self.timeout,
        )
        with res:
            response_headers = CaseInsensitiveDict(res.headers)
            if not check_headers(request, res.status_code, response_headers):
                raise AbortedAfterHeadersError()
            body = res.raw.read(body_size if body_size > 0 else None, decode_content=True)
        encoding = response_headers.get("Content-Encoding", "").lower()
        content_type = response_headers.get("Content-Type", "").lower()
        path = urlsplit(res.url or request.url).path.lower()
        if (not encoding and "gzip" in content_type) or path.endswith(".xml.gz"):
            if body[:2] == b"\x1f\x8b":
                body = gzip.decompress(body)
        return Response(
            status_code=res.status_code,
            body=body,
            headers=response_headers,
            proxy_url=proxy_url,
        )

    def limit(self, rule: LimitRule) -> None:
        """Add ``rule`` and initialize it."""
        with self._lock:
            self.limit_rules.append(rule)
        rule.init()

    def limits(self, rules: Iterable[LimitRule]) -> None:
        for rule in rules:
            self.limit(rule)


def _load_cached(filename: Path) -> Response:
    data = json.loads(filename.read_text())
    return Response(
        status_code=data["StatusCode"],
        body=base64.b64decode(data["Body"]),
        headers=CaseInsensitiveDict(data["Headers"]),
        proxy_url=data.get("ProxyURL", ""),
    )