import gzip
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from harvestkit.http_backend import (
    AbortedAfterHeadersError, HTTPBackend, LimitRule, NoPatternError,
)
from harvestkit.request import Request

HITS = {"count": 0}


class Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/feed.xml.gz":
            body = gzip.compress(b"<urlset/>")
            ctype = "application/octet-stream"
        elif self.path == "/count":
            HITS["count"] += 1
            body = str(HITS["count"]).encode()
            ctype = "text/plain"
        else:
            body = b"hello world"
            ctype = "text/plain"
        self.send_response(200)
        self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture(scope="module")
def base_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def accept(*_):
    return True


def make_backend():
    backend = HTTPBackend()
    backend.init(None)
    return backend


def test_rule_without_pattern():
    with pytest.raises(NoPatternError):
        LimitRule().init()


def test_rule_matching():
    by_glob = LimitRule(domain_glob="*example.com*")
    by_glob.init()
    assert by_glob.match("http://www.example.com/")
    assert not by_glob.match("http://other.org/")
    by_re = LimitRule(domain_regexp=r"example\.org")
    by_re.init()
    assert by_re.match("https://example.org/x")
    assert not by_re.match("https://example.com/x")


def test_get_matching_rule():
    backend = make_backend()
    rule = LimitRule(domain_glob="*127.0.0.1*", parallelism=2)
    backend.limits([rule])
    assert backend.get_matching_rule("http://127.0.0.1/") is rule
    assert backend.get_matching_rule("http://example.com/") is None


def test_limit_with_bad_rule_raises():
    backend = make_backend()
    with pytest.raises(NoPatternError):
        backend.limits([LimitRule()])


def test_do_plain_and_body_size(base_url):
    backend = make_backend()
    backend.limit(LimitRule(domain_glob="*", delay=0.01))
    resp = backend.do(Request(url=base_url + "/plain"), 0, accept)
    assert resp.status_code == 200
    assert resp.body == b"hello world"
    short = backend.do(Request(url=base_url + "/plain"), 5, accept)
    assert short.body == b"hello"


def test_do_gunzips_xml_gz(base_url):
    resp = make_backend().do(Request(url=base_url + "/feed.xml.gz"), 0, accept)
    assert resp.body == b"<urlset/>"


def test_do_aborts_after_headers(base_url):
    seen = []

    def reject(request, status, headers):
        seen.append(status)
        return False

    with pytest.raises(AbortedAfterHeadersError):
        make_backend().do(Request(url=base_url + "/plain"), 0, reject)
    assert seen == [200]


def test_cache_serves_stored_response(base_url, tmp_path):
    backend = make_backend()
    first = backend.cache(Request(url=base_url + "/count"), 0, accept, str(tmp_path))
    second = backend.cache(Request(url=base_url + "/count"), 0, accept, str(tmp_path))
    assert second.body == first.body
    assert second.status_code == 200
    assert len(list(tmp_path.rglob("*"))) == 2
    fresh = backend.cache(Request(url=base_url + "/count"), 0, accept, "")
    assert fresh.body != first.body