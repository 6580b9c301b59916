"""
SOLE RESPONSIBILITY: httpx integration - request/response event hooks that route an
httpx.Client / httpx.AsyncClient through the resolved environment.
"""

import json
import logging
from typing import TYPE_CHECKING, Union

import httpx

from ..core.errors import ErrorCode

if TYPE_CHECKING:
    from .interceptor import RequestInterceptor

logger = logging.getLogger(__name__)

HttpClient = Union[httpx.Client, httpx.AsyncClient]


def _is_json(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return "json" in content_type.lower()


def rewrite_request_url(request: httpx.Request, interceptor: "RequestInterceptor", registered_base: str = "") -> None:
    """
    Move the request onto the currently resolved base and re-host loopback URLs.
    URLs built from the base_url set at registration follow later environment changes.
    """
    original = str(request.url)
    candidate = original
    current = interceptor.base_url()
    if registered_base and current and current != registered_base and original.startswith(registered_base):
        candidate = current + original[len(registered_base):]
    fixed = interceptor.normalizer.fix_host(candidate)
    if fixed != original:
        request.url = httpx.URL(fixed)
        request.headers["Host"] = request.url.netloc.decode("ascii")
        logger.debug(f"Rewrote request URL {original} -> {fixed}")


def rewrite_response_body(response: httpx.Response, interceptor: "RequestInterceptor") -> None:
    """
    Rewrite media fields of an already-read JSON body.
    On any failure the body is left exactly as received.
    """
    if not _is_json(response):
        return
    try:
        payload = response.json()
        interceptor.rewriter.rewrite(payload, interceptor.base_url())
        # httpx exposes no public setter for a read body. Response keeps the body in
        # _content and caches the decoded text in _text (httpx 0.24 through 0.28,
        # pinned below 1.0 in pyproject.toml)
        response._content = json.dumps(payload, ensure_ascii=False).encode(response.charset_encoding or "utf-8")
        if hasattr(response, "_text"):
            del response._text
    except Exception as e:
        logger.warning(f"{ErrorCode.REWRITE_FAILED.tag()} Response from {response.request.url} left unchanged: {e}")


def install_httpx_hooks(client: HttpClient, interceptor: "RequestInterceptor") -> None:
    """
    Point the client's base_url at the resolved environment and append the
    request/response hooks. Async clients get coroutine hooks.
    """
    client.base_url = interceptor.base_url()
    registered_base = str(client.base_url)

    if isinstance(client, httpx.AsyncClient):

        async def on_request(request: httpx.Request) -> None:
            rewrite_request_url(request, interceptor, registered_base)

        async def on_response(response: httpx.Response) -> None:
            if _is_json(response):
                await response.aread()
            rewrite_response_body(response, interceptor)

    else:

        def on_request(request: httpx.Request) -> None:
            rewrite_request_url(request, interceptor, registered_base)

        def on_response(response: httpx.Response) -> None:
            if _is_json(response):
                response.read()
            rewrite_response_body(response, interceptor)

    hooks = client.event_hooks
    client.event_hooks = {
        "request": list(hooks.get("request", [])) + [on_request],
        "response": list(hooks.get("response", [])) + [on_response],
    }
