"""Helper add-ons that attach callbacks to a collector."""

from __future__ import annotations

from typing import Any

REFERER_KEY = "_referer"


def referer(collector: Any) -> None:
    """Send the URL of the previous page as the Referer header.

    This works only for requests that share the context of the response
    that led to them, such as those started from a request's own visit.
    """

    def remember(response: Any) -> None:
        response.ctx.put(REFERER_KEY, response.request.url)

    def apply(request: Any) -> None:
        ref = request.ctx.get(REFERER_KEY)
        if ref:
            request.headers["Referer"] = ref

    collector.on_response(remember)
    collector.on_request(apply)


def url_length_filter(collector: Any, url_length_limit: int) -> None:
    """Abort requests whose URL is longer than ``url_length_limit`` characters."""

    def check(request: Any) -> None:
        if len(request.url) > url_length_limit:
            request.abort()

    collector.on_request(check)