"""HTTP responses received by a collector."""

from __future__ import annotations

import codecs
import email.message
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlsplit

import chardet
from requests.structures import CaseInsensitiveDict

from .context import Context

_NON_TEXT_TYPES = ("image/", "video/", "audio/", "font/")


def _clean(part: str) -> str:
    return re.sub(r"[^\w.]+", "_", part, flags=re.ASCII).strip("_")


def _sanitize_file_name(name: str) -> str:
    stem, ext = os.path.splitext(name)
    clean_ext = _clean(ext.lstrip(".")) or "unknown"
    return f"{_clean(stem)}.{clean_ext}"


def _charset_of(content_type: str) -> Optional[str]:
    message = email.message.Message()
    message["Content-Type"] = content_type
    value = message.get_param("charset")
    return str(value).strip() if value else None


def encode_bytes(body: bytes, content_type: str) -> bytes:
    """Convert ``body`` from the charset named in ``content_type`` to UTF-8.

    Raises LookupError for an unknown charset.
    """
    name = _charset_of(content_type)
    if name is None:
        name = chardet.detect(body).get("encoding") or "windows-1252"
    codec = codecs.lookup(name)
    return body.decode(codec.name, errors="replace").encode("utf-8")


@dataclass
class Response:
    """A response received by a collector."""

    status_code: int = 0
    body: bytes = b""
    ctx: Optional[Context] = None
    request: Any = None
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    trace: Any = None
    proxy_url: str = ""

    def save(self, file_name: Union[str, os.PathLike]) -> None:
        """Write the body to ``file_name``."""
        Path(file_name).write_bytes(self.body)

    def file_name(self) -> str:
        """Return a safe file name from Content-Disposition or the request URL."""
        disposition = self.headers.get("Content-Disposition", "")
        if disposition:
            message = email.message.Message()
            message["Content-Disposition"] = disposition
            name = message.get_param("filename", header="content-disposition")
            if name:
                return _sanitize_file_name(str(name))
        parts = urlsplit(self.request.url)
        if parts.query:
            return _sanitize_file_name(f"{parts.path}_{parts.query}")
        return _sanitize_file_name(parts.path.removeprefix("/"))

    def fix_charset(self, detect_charset: bool, default_encoding: str) -> None:
        """Re-encode the body as UTF-8 according to its declared or detected charset."""
        if not self.body:
            return
        if default_encoding:
            self.body = encode_bytes(self.body, "text/plain; charset=" + default_encoding)
            return
        content_type = self.headers.get("Content-Type", "").lower()
        if any(kind in content_type for kind in _NON_TEXT_TYPES):
            return
        if "charset" not in content_type:
            if not detect_charset:
                return
            detected = chardet.detect(self.body).get("encoding")
            if not detected:
                raise ValueError("could not detect the body's character set")
            content_type = "text/plain; charset=" + detected.lower()
        if "utf-8" in content_type or "utf8" in content_type:
            return
        self.body = encode_bytes(self.body, content_type)