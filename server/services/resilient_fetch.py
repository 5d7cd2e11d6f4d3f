"""HTTP fetch with bounded retries and timeout cancellation.

Usage:
    data = await fetch_json(client, url, headers={"Authorization": f"Bearer {token}"},
                            max_retries=3, base_delay=1.0, timeout=10.0)

Network errors and non-2xx statuses are retried with exponential (default) or
linear backoff. A timeout cancels the in-flight attempt and is raised at once
as DownstreamTimeoutError; timeouts are never retried.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx

from core.logging import get_logger
from services.marketplace.exceptions import DownstreamError, DownstreamTimeoutError

logger = get_logger(__name__)


class Backoff(str, Enum):
    """Delay growth between attempts."""
    EXPONENTIAL = "exponential"  # base * 2**attempt
    LINEAR = "linear"            # base * (attempt + 1)


def retry_delay(attempt: int, base_delay: float, backoff: Backoff = Backoff.EXPONENTIAL) -> float:
    """Seconds to wait after the 0-based ``attempt`` failed."""
    if backoff == Backoff.LINEAR:
        return base_delay * (attempt + 1)
    return base_delay * (2 ** attempt)


def _decode(response: httpx.Response) -> Any:
    """Parse a response body as JSON, falling back to ``{"message": text}``."""
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"message": response.text}


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, Any]] = None,
    data: Optional[Mapping[str, Any]] = None,
    json: Any = None,
    max_retries: int = 3,
    base_delay: float = 1.0,
    timeout: Optional[float] = None,
    backoff: Backoff = Backoff.EXPONENTIAL,
) -> Any:
    """
    Issue a request and return the parsed JSON body of the first 2xx response.

    Args:
        client: Shared async client.
        url: Absolute target URL.
        max_retries: Total attempts, including the first one.
        base_delay: Backoff base in seconds.
        timeout: Per-attempt bound in seconds. None disables it.
        backoff: Delay growth strategy.

    Raises:
        DownstreamTimeoutError: An attempt exceeded ``timeout``.
        DownstreamError: Every attempt failed. Carries the last status and
            payload, or chains the last network exception.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Optional[DownstreamError] = None

    for attempt in range(max_retries):
        try:
            request = client.request(
                method, url, headers=headers, params=params, data=data, json=json
            )
            if timeout is not None:
                response = await asyncio.wait_for(request, timeout=timeout)
            else:
                response = await request
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Request aborted due to timeout", url=url, timeout=timeout,
                           attempt=attempt + 1)
            raise DownstreamTimeoutError(url, timeout) from e
        except httpx.RequestError as e:
            last_error = DownstreamError(url, f"Network error: {type(e).__name__}: {e}")
            last_error.__cause__ = e
        else:
            if response.is_success:
                return _decode(response)
            payload = _decode(response)
            last_error = DownstreamError(
                url,
                f"HTTP error! Status: {response.status_code}",
                status=response.status_code,
                payload=payload,
            )

        logger.warning("Request attempt failed", url=url, attempt=attempt + 1,
                       max_retries=max_retries, error=str(last_error))

        if attempt < max_retries - 1:
            await asyncio.sleep(retry_delay(attempt, base_delay, backoff))

    raise last_error


async def send(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "POST",
    headers: Optional[Dict[str, str]] = None,
    json: Any = None,
    timeout: Optional[float] = None,
) -> bool:
    """Best-effort single request. Returns True on a 2xx, never raises for I/O."""
    try:
        request = client.request(method, url, headers=headers, json=json)
        if timeout is not None:
            response = await asyncio.wait_for(request, timeout=timeout)
        else:
            response = await request
    except (asyncio.TimeoutError, httpx.HTTPError) as e:
        logger.warning("Best-effort request failed", url=url, error=f"{type(e).__name__}: {e}")
        return False

    if not response.is_success:
        logger.warning("Best-effort request rejected", url=url, status_code=response.status_code,
                       message=_decode(response))
        return False
    return True
