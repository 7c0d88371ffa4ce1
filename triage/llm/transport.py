"""HTTP transport for provider calls.

Network failures and timeouts are folded into ``TransportError``; HTTP status
codes are returned to the caller, which decides what a non-200 means.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The request never produced an HTTP response."""

    def __init__(self, reason: str, *, timed_out: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.timed_out = timed_out


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: float,
) -> httpx.Response:
    """POST a JSON body and return the raw response, whatever its status."""
    try:
        return await client.post(url, json=payload, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        logger.error("Request to %s timed out after %.0fs", url, timeout)
        raise TransportError("Request timeout", timed_out=True) from e
    except httpx.HTTPError as e:
        logger.error("Request to %s failed: %s", url, e)
        raise TransportError(f"Network error: {e}") from e


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    timeout: float,
) -> httpx.Response:
    """GET a resource and return the raw response, whatever its status."""
    try:
        return await client.get(url, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        logger.error("Request to %s timed out after %.0fs", url, timeout)
        raise TransportError("Request timeout", timed_out=True) from e
    except httpx.HTTPError as e:
        logger.error("Request to %s failed: %s", url, e)
        raise TransportError(f"Network error: {e}") from e
