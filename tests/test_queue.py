import random
import threading

import pytest

from harvestkit.request import Request
from harvestkit.queue import (
    InMemoryQueueStorage,
    Queue,
    QueueFullError,
)


def test_queue_processes_everything():
    storage = InMemoryQueueStorage(max_size=100000)
    q = Queue(10, storage)
    rng = random.Random(12387123712321232)
    lock = threading.Lock()
    counts = {"items": 0, "requests": 0, "success": 0, "failure": 0}

    def put():
        with lock:
            delay = rng.randint(0, 49)
            counts["items"] += 1
        q.add_url(f"http://127.0.0.1/delay?t={delay}us")

    for _ in range(3000):
        put()
        storage.add_request(b"error request")

    def handler(request):
        with lock:
            counts["requests"] += 1
            if request.method == "GET" and request.url.startswith("http://127.0.0.1/delay"):
                counts["success"] += 1
            else:
                counts["failure"] += 1
            toss = rng.randint(0, 1) == 0
        if toss:
            put()

    q.run(handler)
    assert counts["items"] == counts["requests"]
    assert counts["success"] + counts["failure"] == counts["requests"]
    assert counts["failure"] == 0
    assert q.is_empty()


def test_storage_is_fifo():
    storage = InMemoryQueueStorage()
    for data in (b"a", b"b", b"c"):
        storage.add_request(data)
    assert storage.queue_size() == 3
    assert [storage.get_request() for _ in range(3)] == [b"a", b"b", b"c"]
    assert storage.queue_size() == 0


def test_storage_empty_returns_none():
    assert InMemoryQueueStorage().get_request() is None


def test_storage_max_size():
    storage = InMemoryQueueStorage(max_size=2)
    storage.add_request(b"a")
    storage.add_request(b"b")
    with pytest.raises(QueueFullError):
        storage.add_request(b"c")
    assert storage.queue_size() == 2


def test_add_url_and_size():
    q = Queue(1)
    assert q.is_empty()
    q.add_url("http://example.com/a")
    q.add_url("http://example.com/b")
    assert q.size() == 2
    assert not q.is_empty()


def test_add_url_rejects_invalid():
    q = Queue(1)
    with pytest.raises(ValueError):
        q.add_url("not a url")
    assert q.size() == 0


def test_zero_threads_rejected():
    with pytest.raises(ValueError):
        Queue(0)


def test_run_delivers_requests_in_order_with_one_thread():
    q = Queue(1)
    urls = [f"http://example.com/{n}" for n in range(5)]
    for url in urls:
        q.add_url(url)
    seen = []
    q.run(lambda request: seen.append(request.url))
    assert seen == urls
    assert q.size() == 0


def test_run_keeps_context_and_method():
    q = Queue(2)
    request = Request(url="http://example.com/form", method="POST", body=b"x=1")
    request.ctx.put("k", "v")
    q.add_request(request)
    received = []
    q.run(received.append)
    assert len(received) == 1
    assert received[0].method == "POST"
    assert received[0].ctx.get("k") == "v"
    assert received[0].body.read() == b"x=1"


def test_stop_from_handler():
    q = Queue(1)
    for n in range(5):
        q.add_url(f"http://example.com/{n}")
    seen = []

    def handler(request):
        seen.append(request.url)
        q.stop()

    q.run(handler)
    assert len(seen) == 1
    assert q.size() == 4


def test_duplicate_run_raises():
    q = Queue(1)
    q.add_url("http://example.com/")
    errors = []
    handled = []

    def handler(request):
        handled.append(request.url)
        try:
            q.run(lambda r: None)
        except RuntimeError as exc:
            errors.append(exc)

    q.run(handler)
    assert handled == ["http://example.com/"]
    assert len(errors) == 1
    assert "duplicate" in str(errors[0])
    assert q.size() == 0
    assert q.is_empty()


def test_undecodable_entries_are_dropped():
    storage = InMemoryQueueStorage()
    q = Queue(2, storage)
    storage.add_request(b"error request")
    q.add_url("http://example.com/")
    seen = []
    q.run(lambda request: seen.append(request.url))
    assert seen == ["http://example.com/"]
    assert storage.queue_size() == 0