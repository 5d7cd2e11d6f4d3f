"""Marketplace gateway exception hierarchy.

Every error carries the HTTP status it maps to and a message that is safe to
return to API callers.
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace gateway errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class QueryValidationError(MarketplaceError):
    """Missing or malformed required query parameter."""

    status_code = 400


class AuthError(MarketplaceError):
    """Assertion signing or token exchange failed."""

    def __init__(self, stage: str, message: str, status_code: int = 500):
        self.stage = stage
        super().__init__(message, status_code)


class DownstreamError(MarketplaceError):
    """Marketplace call failed after retries or returned a non-success status.

    Attributes:
        url: Target of the failed call.
        status: Upstream HTTP status, None for network-level failures.
        payload: Decoded upstream error body, if any.
    """

    def __init__(self, url: str, message: str, status: Optional[int] = None,
                 payload: Any = None):
        self.url = url
        self.status = status
        self.payload = payload
        super().__init__(message, _caller_status(status))


class DownstreamTimeoutError(DownstreamError):
    """A downstream attempt exceeded its timeout and was cancelled."""

    def __init__(self, url: str, timeout: Optional[float]):
        self.timeout = timeout
        super().__init__(url, f"Request timed out for {url}")


def _caller_status(status: Optional[int]) -> int:
    """Client errors pass through, everything else becomes a 500."""
    if status is not None and 400 <= status < 500:
        return status
    return 500


def public_message(error: MarketplaceError) -> str:
    """Human-readable message for the ``{"error": ...}`` response body."""
    if not isinstance(error, DownstreamError):
        return error.message

    if error.status == 400:
        if isinstance(error.payload, dict) and error.payload.get("message"):
            return str(error.payload["message"])
        return "Invalid search parameters. Please check your filters and try again."
    if error.status == 401:
        return "Authentication failed. Please try again."
    if error.status == 403:
        return "Company not authorized. Please check your company registration."
    if error.status == 404:
        return "Requested listing was not found."
    if error.status == 429:
        return "Too many requests. Please wait a moment and try again."
    return "Marketplace request failed. Please try again later."
