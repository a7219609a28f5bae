"""Web-based debugging frontend showing current and finished requests."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import urlsplit

from .debug import Debugger, Event

_log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "127.0.0.1:7676"

_INDEX_PAGE = """<!DOCTYPE html>
<html>
<head>
 <meta charset="utf-8">
 <title>Collector Debugger WebUI</title>
 <style>
  body { font-family: sans-serif; margin: 0; }
  #menu { background: #1b1c1d; color: #fff; padding: 0.6em 1em; }
  .columns { display: flex; gap: 2em; padding: 1em; }
  .column { flex: 1; }
  .event { border-bottom: 1px solid #ddd; padding: 0.4em 0; }
  .meta { color: #777; font-size: 0.85em; }
 </style>
</head>
<body>
<div id="menu"><a href="/" style="color:#fff"><b>Collector WebDebugger</b></a></div>
<div class="columns">
 <div class="column">
  <h1>Current Requests <span id="current_request_count"></span></h1>
  <div id="current_requests"></div>
 </div>
 <div class="column">
  <h1>Finished Requests <span id="request_log_count"></span></h1>
  <div id="request_log"></div>
 </div>
</div>
<script>
function entry(url, meta) {
  var div = document.createElement("div");
  div.className = "event";
  var summary = document.createElement("div");
  summary.textContent = url;
  var info = document.createElement("div");
  info.className = "meta";
  info.textContent = meta;
  div.appendChild(summary);
  div.appendChild(info);
  return div;
}
function fetchStatus() {
  fetch("/status").then(function(r) { return r.json(); }).then(function(data) {
    var current = document.getElementById("current_requests");
    var log = document.getElementById("request_log");
    current.innerHTML = "";
    log.innerHTML = "";
    var keys = Object.keys(data.CurrentRequests);
    document.getElementById("current_request_count").textContent = "(" + keys.length + ")";
    document.getElementById("request_log_count").textContent = "(" + data.RequestLog.length + ")";
    keys.forEach(function(k) {
      var r = data.CurrentRequests[k];
      current.appendChild(entry(r.URL, "Collector #" + r.CollectorID + " - " + r.Started));
    });
    data.RequestLog.reverse().forEach(function(r) {
      log.appendChild(entry(r.URL, "Collector #" + r.CollectorID + " - " + (r.Duration / 1000000000) + "s"));
    });
    setTimeout(fetchStatus, 1000);
  });
}
document.addEventListener("DOMContentLoaded", fetchStatus);
</script>
</body>
</html>
"""


@dataclass
class _RequestInfo:
    url: str = ""
    started: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_clock: float = field(default_factory=time.monotonic)
    duration: float = 0.0
    response_status: str = ""
    id: int = 0
    collector_id: int = 0

    def to_json(self) -> dict:
        return {
            "URL": self.url,
            "Started": self.started.isoformat(),
            "Duration": int(self.duration * 1_000_000_000),
            "ResponseStatus": self.response_status,
            "ID": self.id,
            "CollectorID": self.collector_id,
        }


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    return host, int(port)


class WebDebugger(Debugger):
    """Serves a page listing running and finished requests of collectors."""

    def __init__(self, address: str = "") -> None:
        self.address = address
        self.current_requests: dict[int, _RequestInfo] = {}
        self.request_log: list[_RequestInfo] = []
        self._lock = threading.Lock()
        self._initialized = False
        self._server: Optional[ThreadingHTTPServer] = None

    def init(self) -> None:
        """Start the web server in a background thread; later calls do nothing."""
        if self._initialized:
            return
        try:
            if not self.address:
                self.address = DEFAULT_ADDRESS
            self.request_log = []
            self.current_requests = {}
            host, port = _split_address(self.address)
            server = ThreadingHTTPServer((host, port), self._handler_class())
            self.address = f"{host}:{server.server_address[1]}"
            self._server = server
            _log.info("Starting debug webserver on %s", self.address)
            threading.Thread(target=server.serve_forever, daemon=True).start()
        finally:
            self._initialized = True

    def event(self, e: Event) -> None:
        with self._lock:
            if e.type == "request":
                self.current_requests[e.request_id] = _RequestInfo(
                    url=e.values.get("url", ""),
                    id=e.request_id,
                    collector_id=e.collector_id,
                )
            elif e.type in ("response", "error"):
                info = self.current_requests.pop(e.request_id, None) or _RequestInfo()
                info.duration = time.monotonic() - info.started_clock
                info.response_status = e.values.get("status", "")
                self.request_log.append(info)

    def status_json(self) -> str:
        """Return the debugger's state as the JSON served on /status."""
        with self._lock:
            data = {
                "Address": self.address,
                "CurrentRequests": {
                    str(request_id): info.to_json()
                    for request_id, info in self.current_requests.items()
                },
                "RequestLog": [info.to_json() for info in self.request_log],
            }
        return json.dumps(data, indent=2)

    def shutdown(self) -> None:
        """Stop the web server if it is running."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        self._initialized = False

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        debugger = self

        class _Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                if urlsplit(self.path).path == "/status":
                    body = debugger.status_json().encode("utf-8")
                    content_type = "application/json"
                else:
                    body = _INDEX_PAGE.encode("utf-8")
                    content_type = "text/html; charset=utf-8"
                self.send_response(200)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args) -> None:
                _log.debug("%s %s", self.address_string(), format % args)

        return _Handler