"""HTTP requests made by a collector."""

from __future__ import annotations

import base64
import io
import itertools
import json
import threading
from dataclasses import dataclass, field
from typing import IO, Any, Optional, Union
from urllib.parse import urljoin, urlsplit, urlunsplit

from requests.structures import CaseInsensitiveDict

from .context import Context

Body = Union[bytes, IO[bytes], None]

_id_lock = threading.Lock()
_ids = itertools.count(1)


def _next_id() -> int:
    with _id_lock:
        return next(_ids)


def _normalize_url(url: str) -> str:
    """Parse ``url`` and return it in canonical form; raise ValueError if invalid."""
    parts = urlsplit(url.strip())
    if not parts.scheme:
        raise ValueError(f"URL {url!r} has no scheme")
    netloc = parts.netloc
    if parts.hostname is not None:
        # Lower-case the host but keep user info and port as given.
        userinfo, at, hostport = netloc.rpartition("@")
        netloc = f"{userinfo}{at}{hostport.lower()}"
    path = parts.path
    if not path and netloc:
        path = "/"
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, parts.fragment))


@dataclass
class Request:
    """A request made by a collector."""

    url: str
    method: str = "GET"
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    host: str = ""
    ctx: Context = field(default_factory=Context)
    depth: int = 0
    body: Body = None
    response_character_encoding: str = ""
    id: int = 0
    collector: Any = None
    aborted: bool = False
    base_url: Optional[str] = None

    def new(self, method: str, url: str, body: Body) -> "Request":
        """Create a request that shares this request's context and host."""
        return Request(
            url=_normalize_url(url),
            method=method,
            body=body,
            ctx=self.ctx,
            host=self.host,
            id=_next_id(),
            collector=self.collector,
        )

    def abort(self) -> None:
        """Cancel the request when called from a request callback."""
        self.aborted = True

    def absolute_url(self, url: str) -> str:
        """Resolve ``url`` against this request; ``""`` for fragments or bad URLs."""
        if url.startswith("#"):
            return ""
        base = self.base_url if self.base_url is not None else self.url
        try:
            return _normalize_url(urljoin(base, url))
        except ValueError:
            return ""

    def _read_body(self) -> Optional[bytes]:
        if self.body is None:
            return None
        if isinstance(self.body, (bytes, bytearray)):
            return bytes(self.body)
        data = self.body.read()
        return data.encode("utf-8") if isinstance(data, str) else data

    def marshal(self) -> bytes:
        """Serialize the request to JSON bytes."""
        ctx: dict[str, Any] = {}
        if self.ctx is not None:
            self.ctx.for_each(lambda k, v: ctx.__setitem__(k, v))
        body = self._read_body()
        data = {
            "URL": self.url,
            "Method": self.method,
            "Depth": self.depth,
            "Body": base64.b64encode(body).decode("ascii") if body is not None else None,
            "ID": self.id,
            "Ctx": ctx,
            "Headers": (
                {key: [value] for key, value in self.headers.items()}
                if self.headers is not None
                else None
            ),
            "Host": self.host,
        }
        return json.dumps(data).encode("utf-8")

    @classmethod
    def from_json(cls, data: Union[bytes, str]) -> "Request":
        """Rebuild a request from the output of :meth:`marshal`."""
        raw = json.loads(data)
        ctx = Context()
        for key, value in (raw.get("Ctx") or {}).items():
            ctx.put(key, value)
        headers = CaseInsensitiveDict(
            {key: ", ".join(values) for key, values in (raw.get("Headers") or {}).items()}
        )
        body_text = raw.get("Body")
        body = io.BytesIO(base64.b64decode(body_text)) if body_text else None
        return cls(
            url=_normalize_url(raw["URL"]),
            method=raw.get("Method") or "GET",
            headers=headers,
            host=raw.get("Host") or "",
            ctx=ctx,
            depth=raw.get("Depth", 0),
            body=body,
            id=raw.get("ID", 0),
        )