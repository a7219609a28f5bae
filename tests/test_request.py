import io
import json

import pytest

from harvestkit.request import Request


def test_new_shares_context_and_host():
    parent = Request(url="http://example.com/", host="example.com")
    parent.ctx.put("k", "v")
    child = parent.new("POST", "http://example.com/next", b"data")
    assert child.ctx is parent.ctx
    assert child.host == "example.com"
    assert child.method == "POST"
    assert child.url == "http://example.com/next"
    other = parent.new("GET", "http://example.com/x", None)
    assert other.id > child.id


def test_new_rejects_invalid_url():
    parent = Request(url="http://example.com/")
    with pytest.raises(ValueError):
        parent.new("GET", "http://[::1", None)


def test_abort_sets_flag():
    r = Request(url="http://example.com/")
    r.abort()
    assert r.aborted is True


def test_absolute_url():
    r = Request(url="http://example.com/a/b.html")
    assert r.absolute_url("#top") == ""
    assert r.absolute_url("c.html") == "http://example.com/a/c.html"
    assert r.absolute_url("/d") == "http://example.com/d"
    r.base_url = "http://example.org/base/"
    assert r.absolute_url("e") == "http://example.org/base/e"


def test_marshal_round_trip():
    r = Request(url="http://example.com/p?q=1", method="POST", host="example.com",
                depth=3, body=io.BytesIO(b"payload"), id=7)
    r.headers["X-Test"] = "yes"
    r.ctx.put("name", "value")
    data = r.marshal()
    raw = json.loads(data)
    assert raw["URL"] == "http://example.com/p?q=1"
    assert raw["Headers"] == {"X-Test": ["yes"]}
    back = Request.from_json(data)
    assert back.url == r.url
    assert back.method == "POST"
    assert back.depth == 3
    assert back.id == 7
    assert back.host == "example.com"
    assert back.headers["x-test"] == "yes"
    assert back.ctx.get("name") == "value"
    assert back.body.read() == b"payload"


def test_marshal_without_body():
    raw = json.loads(Request(url="http://example.com/").marshal())
    assert raw["Body"] is None
    assert raw["Method"] == "GET"