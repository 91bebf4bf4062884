"""Correlation id shared by HTTP requests, log records and change notifications."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

CORRELATION_HEADER = "x-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_scope(value: str | None = None) -> Iterator[str]:
    """Bind ``value`` for the enclosed block, falling back to the current id or a new one."""
    correlation_id = value or _correlation_id.get() or str(uuid.uuid4())
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)
