"""
Exception hierarchy for ledger-submit.

Expected gateway replies (rejections, pending, duplicates) are never
exceptions. They come back as result objects. Exceptions cover:

    - the gateway could not be reached or asked us to slow down
      (``GatewayUnavailable``, ``RateLimited``): transient.
    - the gateway replied with something we cannot parse
      (``GatewayProtocolError``): structural.
    - a caller-triggered sequence refresh that cannot produce a valid
      new envelope (``SequenceRefreshError``).
"""

from __future__ import annotations

from typing import Any

from ledger_submit.result_codes import ErrorCategory


class LedgerSubmitError(Exception):
    """Base class for all ledger-submit errors."""


class GatewayError(LedgerSubmitError):
    """A failure talking to the ledger gateway.

    Args:
        message: Human-readable summary.
        error_code: Machine-readable code (e.g. "TIMEOUT", "HTTP_ERROR").
        details: Diagnostic context (url, status_code, ...). Never secrets.
    """

    category = ErrorCategory.TERMINAL

    def __init__(
        self,
        message: str,
        *,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class GatewayUnavailable(GatewayError):
    """Connection failure, client-side timeout, or 5xx from the gateway."""

    category = ErrorCategory.TRANSIENT


class RateLimited(GatewayUnavailable):
    """The gateway answered 429. ``retry_after`` is in seconds, if given."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code="RATE_LIMITED", details=details)
        self.retry_after = retry_after


class GatewayProtocolError(GatewayError):
    """The gateway reply did not match the expected contract."""

    category = ErrorCategory.STRUCTURAL


class SequenceRefreshError(LedgerSubmitError):
    """A refreshed sequence number cannot be used to rebuild the envelope."""

    category = ErrorCategory.STATE_DIVERGENCE


def classify_exception(exc: BaseException) -> ErrorCategory:
    """Map an exception raised during submission to an ErrorCategory.

    Anything that is not a ledger-submit error is TERMINAL: unknown
    failures are surfaced, not retried.
    """
    category = getattr(exc, "category", None)
    if isinstance(exc, LedgerSubmitError) and isinstance(category, ErrorCategory):
        return category
    return ErrorCategory.TERMINAL
