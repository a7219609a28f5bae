# harvestkit

Building blocks for web crawlers and scrapers in Python.

harvestkit supplies the parts a crawler is made of. You assemble them
yourself:

- `harvestkit.request.Request` describes one HTTP request. It can resolve
  relative links (`absolute_url`), derive a follow-up request that shares its
  context (`new`), and serialize itself to JSON (`marshal`, `Request.from_json`).
- `harvestkit.response.Response` holds a received response. It can write the
  body to disk (`save`), choose a safe file name from `Content-Disposition` or
  the URL (`file_name`), and re-encode the body as UTF-8 (`fix_charset`).
- `harvestkit.context.Context` is a thread-safe store that passes values
  between callbacks.
- `harvestkit.http_backend.HTTPBackend` sends `Request`s through a
  `requests.Session`. It applies per-domain `LimitRule`s for parallelism and
  delay, and `cache` can keep GET responses in an on-disk cache.
- `harvestkit.http_trace.HTTPTrace` measures connection time and the time to
  the first response byte for a `requests.Session`.
- `harvestkit.xmlelement.XMLElement` runs XPath queries on lxml HTML or XML
  elements.
- `harvestkit.storage.InMemoryStorage` records visited request ids and holds
  cookies. `stringify_cookies`, `unstringify_cookies` and `contains_cookie`
  work on cookie lists.
- `harvestkit.queue.Queue` passes queued requests to a handler across
  several worker threads. `InMemoryQueueStorage` is its default storage.
- `harvestkit.proxy.round_robin_proxy_switcher` returns a new proxy URL on
  each call, cycling through the list.
- `harvestkit.debug.LogDebugger` writes collector `Event`s as log lines.
  `harvestkit.webdebugger.WebDebugger` shows them on a small local web page,
  and the page's JSON data is served at `/status`.
- `harvestkit.extensions` has `referer` and `url_length_filter`. Both
  register callbacks on any object that has `on_request(callback)` and
  `on_response(callback)` methods.

## Installation

```
pip install harvestkit
```

## XPath extraction

```python
from lxml import html

from harvestkit.xmlelement import from_html_node

doc = html.fromstring("<html><body><ul><li class='a'>one</li><li class='b'>two</li></ul></body></html>")
element = from_html_node(None, doc)
element.child_texts("//li")                   # ["one", "two"]
element.child_attr("/body/ul/li[1]", "class") # "a"
element.child_attrs("//li", "class")          # ["a", "b"]
```

For XML documents, use `from_xml_node`. It matches attributes by their local
name.

## Sending requests with limits and a cache

```python
from harvestkit.http_backend import HTTPBackend, LimitRule
from harvestkit.request import Request

backend = HTTPBackend()
backend.init(None)
backend.limit(LimitRule(domain_glob="*example.com*", parallelism=2, delay=1.0))

def accept(request, status_code, headers):
    return True

response = backend.cache(Request(url="https://example.com/"), 0, accept, "cache")
print(response.status_code, len(response.body))
```

A `LimitRule` needs a `domain_regexp`, a `domain_glob`, or both. Otherwise
`init` raises `NoPatternError`. If the header check returns `False`, `do`
raises `AbortedAfterHeadersError` and the body is not read.

## Queue

```python
from harvestkit.queue import Queue

def handler(request):
    print("fetching", request.url)

queue = Queue(threads=4)
queue.add_url("https://example.com/")
queue.run(handler)
```

`run` blocks until no requests are waiting or in progress, or until `stop`
is called. Requests that cannot be decoded are dropped. Exceptions raised
by the handler are logged.

## Proxies

```python
from harvestkit.proxy import round_robin_proxy_switcher

switch = round_robin_proxy_switcher("http://localhost:8080", "socks5://localhost:1080")
switch()  # "http://localhost:8080"
switch()  # "socks5://localhost:1080"
```

## Debugging

```python
from harvestkit.debug import Event, LogDebugger
from harvestkit.webdebugger import WebDebugger

log = LogDebugger()
log.init()
log.event(Event(type="request", request_id=1, values={"url": "https://example.com/"}))

web = WebDebugger(address="127.0.0.1:7676")
web.init()
# ... browse to http://127.0.0.1:7676/ ...
web.shutdown()
```

## What harvestkit does not do

There is no collector object that ties these parts into a crawl. Nothing
visits pages, follows links, or calls your callbacks for you. The helpers in
`harvestkit.extensions` need you to supply such an object. harvestkit has no
CSS-selector element wrapper, does not fill objects from HTML automatically,
and does not generate user agents. It has no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```