# src/logging/context.py — v2
"""Per-request logging context carried across awaits.

One ContextVar holds an immutable LogContext; each asyncio task sees the
value that was current when it was spawned, so concurrent resolve/generate
calls never bleed identifiers into each other's log lines.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Identifiers stamped onto every record emitted during a call."""

    request_id: str | None = None
    requester_id: str | None = None
    operation: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "nutriresolve_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_request_context(
    operation: str,
    requester_id: str | None = None,
    request_id: str | None = None,
) -> str:
    """Start a fresh context for one engine call; any previous step is dropped.

    Returns:
        The request id in effect (a short random hex id when not supplied).
    """
    rid = request_id or uuid.uuid4().hex[:12]
    _current.set(LogContext(request_id=rid, requester_id=requester_id, operation=operation))
    return rid


def set_step(step: str | None) -> None:
    """Record which provider or generation state is running."""
    _current.set(replace(_current.get(), step=step))


def clear_context() -> None:
    _current.set(_EMPTY)


@contextmanager
def request_scope(operation: str, requester_id: str | None = None) -> Iterator[str]:
    """Bind a request context for the duration of the block."""
    token = _current.set(_EMPTY)
    try:
        yield set_request_context(operation, requester_id=requester_id)
    finally:
        _current.reset(token)
