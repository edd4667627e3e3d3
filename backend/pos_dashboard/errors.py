# backend/pos_dashboard/errors.py
import asyncio
from typing import Optional

import requests


class DashboardError(Exception):
    """Base class for every error raised by this package."""


class UpstreamError(DashboardError):
    retryable = False

    def __init__(self, message: str, source: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status = status


class TransientNetworkError(UpstreamError):
    """Connection refused, reset or timed out. Eligible for retry with backoff."""

    retryable = True


class DefinitiveUpstreamError(UpstreamError):
    """The upstream answered with an HTTP error. Surfaced immediately, never retried."""


class SourceUnavailable(DashboardError):
    def __init__(self, source: str, reason: BaseException):
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class AllSourcesUnavailable(DashboardError):
    def __init__(self, sources):
        super().__init__(f"every source unavailable: {', '.join(sources)}")
        self.sources = tuple(sources)


_TRANSIENT_TYPES = (
    requests.ConnectionError,
    requests.Timeout,
    asyncio.TimeoutError,
    ConnectionError,
    TimeoutError,
)


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, UpstreamError):
        return exc.retryable
    return isinstance(exc, _TRANSIENT_TYPES)
