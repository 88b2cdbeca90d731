# src/providers/call_guard.py — v1
"""Per-attempt timeout and error classification for upstream calls.

Every provider call goes through guarded_call(): the call is bounded by
asyncio.wait_for (which cancels the upstream request on timeout) and any
exception is mapped onto the ProviderError taxonomy so callers only ever
handle one family. Caller cancellation is never intercepted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from nutriresolve.core.errors import (
    MalformedProviderResponse,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify_error(error: Exception) -> str:
    """Classify an exception into an error type."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "server", "overloaded")):
        return "server_error"
    if isinstance(error, (ValueError, KeyError, TypeError)):
        return "parse_error"
    if "json" in msg or "parse" in msg or "decode" in msg:
        return "parse_error"
    return "unknown"


def to_provider_error(provider: str, error: Exception) -> ProviderError:
    """Map an arbitrary exception onto the provider error taxonomy."""
    if isinstance(error, ProviderError):
        return error
    error_type = classify_error(error)
    message = f"{error_type}: {error}"
    if error_type == "timeout":
        return ProviderTimeout(provider, message)
    if error_type == "parse_error":
        return MalformedProviderResponse(provider, message)
    return ProviderUnavailable(provider, message)


async def guarded_call(
    provider: str,
    fn: Callable[[], Awaitable[T]],
    timeout: float,
) -> T:
    """Await fn() within timeout seconds.

    Raises:
        ProviderError: ProviderTimeout on timeout, otherwise the classified
            error. asyncio.CancelledError propagates untouched.
    """
    try:
        return await asyncio.wait_for(fn(), timeout=timeout)
    except ProviderError:
        raise
    except asyncio.TimeoutError as e:
        raise ProviderTimeout(provider, f"no answer within {timeout:.1f}s") from e
    except Exception as e:
        mapped = to_provider_error(provider, e)
        logger.debug("Provider %s raised %s → %s", provider, type(e).__name__, type(mapped).__name__)
        raise mapped from e
