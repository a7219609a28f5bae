import pytest
from requests.structures import CaseInsensitiveDict

from harvestkit.request import Request
from harvestkit.response import Response, encode_bytes


def make(body=b"", headers=None, url="http://example.com/a/b.html"):
    return Response(status_code=200, body=body,
                    headers=CaseInsensitiveDict(headers or {}),
                    request=Request(url=url))


def test_save(tmp_path):
    r = make(b"content")
    target = tmp_path / "out.bin"
    r.save(target)
    assert target.read_bytes() == b"content"


def test_file_name_from_disposition():
    r = make(headers={"Content-Disposition": 'attachment; filename="report.pdf"'})
    assert r.file_name() == "report.pdf"


def test_file_name_from_url_is_safe():
    name = make().file_name()
    assert "/" not in name
    assert name.endswith(".html")
    with_query = make(url="http://example.com/page?x=1").file_name()
    assert "/" not in with_query and "?" not in with_query


def test_fix_charset_declared():
    r = make("café".encode("latin-1"), {"Content-Type": "text/html; charset=ISO-8859-1"})
    r.fix_charset(False, "")
    assert r.body == "café".encode("utf-8")


def test_fix_charset_default_encoding():
    r = make("naïve".encode("latin-1"))
    r.fix_charset(False, "iso-8859-1")
    assert r.body.decode("utf-8") == "naïve"


def test_fix_charset_skips_media_and_undeclared():
    raw = "café".encode("latin-1")
    img = make(raw, {"Content-Type": "image/png"})
    img.fix_charset(True, "")
    assert img.body == raw
    plain = make(raw, {"Content-Type": "text/html"})
    plain.fix_charset(False, "")
    assert plain.body == raw


def test_fix_charset_utf8_untouched():
    body = "ünïcode".encode("utf-8")
    r = make(body, {"Content-Type": "text/html; charset=utf-8"})
    r.fix_charset(True, "")
    assert r.body == body


def test_encode_bytes_unknown_charset():
    with pytest.raises(LookupError):
        encode_bytes(b"abc", "text/plain; charset=no-such-charset")