"""
Shared HTTPX client with call logging via event hooks.

Uses HTTPX's built-in event hooks so every downstream call is logged without
a wrapper class. The container owns one client per process and closes it on
shutdown.

Usage:
    client = create_http_client(settings)
    response = await client.get("https://api.example.com/website/search")
    # Logged automatically
"""
import re
import time
from typing import Any

import httpx

from core.config import Settings
from core.logging import get_logger, log_api_call

logger = get_logger(__name__)

# Never log credentials carried in query strings
_SECRET_PARAMS = re.compile(r"(assertion|access_token|key)=[^&]+", re.IGNORECASE)


def _redact(url: str) -> str:
    return _SECRET_PARAMS.sub(r"\1=***", url)


async def _on_request(request: httpx.Request):
    """Stamp the request start time for latency logging."""
    request.extensions["started_at"] = time.perf_counter()


async def _on_response(response: httpx.Response):
    """HTTPX response event hook - logs every downstream call."""
    request = response.request
    started = request.extensions.get("started_at")
    latency_ms = round((time.perf_counter() - started) * 1000, 1) if started else None

    log_api_call(
        logger,
        method=request.method,
        url=_redact(str(request.url)),
        status_code=response.status_code,
        success=response.is_success,
        latency_ms=latency_ms,
    )


def create_http_client(settings: Settings, **kwargs: Any) -> httpx.AsyncClient:
    """
    Create an httpx.AsyncClient with logging hooks enabled.

    Args:
        settings: Application settings (request timeout).
        **kwargs: Additional arguments passed to httpx.AsyncClient
            (tests pass ``transport=httpx.MockTransport(...)``).

    Returns:
        httpx.AsyncClient with request/response event hooks
    """
    kwargs.setdefault("timeout", httpx.Timeout(settings.request_timeout))
    kwargs.setdefault("headers", {"Accept": "application/json"})
    return httpx.AsyncClient(
        event_hooks={"request": [_on_request], "response": [_on_response]},
        **kwargs
    )
