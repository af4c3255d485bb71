"""
Shared HTTP client for the store integrations.

Provides a singleton httpx.AsyncClient for connection pooling and efficient resource usage.
"""
import asyncio
from typing import Optional

import httpx
from coldstore.core.logging_config import log_debug

DEFAULT_TIMEOUT = 30.0

_client: Optional[httpx.AsyncClient] = None
_client_lock: Optional[asyncio.Lock] = None


def _get_lock() -> asyncio.Lock:
    """Get or create the client lock."""
    global _client_lock
    if _client_lock is None:
        _client_lock = asyncio.Lock()
    return _client_lock


async def get_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """
    Get the shared AsyncClient instance.

    Creates a new instance if one doesn't exist or is closed. The timeout is
    only applied when the client is created.
    """
    global _client
    if _client is None or _client.is_closed:
        async with _get_lock():
            if _client is None or _client.is_closed:
                _client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
                log_debug("HTTP client created", timeout=timeout)
    return _client


async def close_http_client():
    """Close the shared client if it exists."""
    global _client, _client_lock
    async with _get_lock():
        if _client and not _client.is_closed:
            await _client.aclose()
            _client = None
            log_debug("HTTP client closed")
    _client_lock = None
