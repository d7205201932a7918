"""
Submission outcome and per-submission poll state.

A SubmissionOutcome is produced once per ``submit()`` / ``poll()`` call
and is the only thing the caller needs to inspect. It is a tagged
variant: ``kind`` says which of SUCCESS / REJECTED / PENDING /
TIMED_OUT / UNKNOWN applies, and only the fields for that kind are set.

``state`` records where the logical submission ended in the state
machine:

    BUILT → SUBMITTED → PENDING → SUBMITTED (via poll) ...
                      → SUCCEEDED          (terminal)
                      → REJECTED           (terminal)
                      → EXPIRED_CONFIRMED  (terminal)

EXPIRED_CONFIRMED is reported with kind REJECTED and result code
TOO_LATE. It is the only state besides a BAD_SEQ rejection in which the
envelope is provably unconsumed and may be rebuilt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ledger_submit.result_codes import (
    CreateAccountResultCode,
    ErrorCategory,
    ResultCode,
    classify_result_code,
    parse_create_account_code,
)


class SubmitMode(StrEnum):
    SYNC = "sync"
    ASYNC = "async"


class SubmissionState(StrEnum):
    BUILT = "BUILT"
    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    REJECTED = "REJECTED"
    EXPIRED_CONFIRMED = "EXPIRED_CONFIRMED"


TERMINAL_STATES = frozenset(
    {
        SubmissionState.SUCCEEDED,
        SubmissionState.REJECTED,
        SubmissionState.EXPIRED_CONFIRMED,
    }
)


class OutcomeKind(StrEnum):
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    PENDING = "PENDING"
    TIMED_OUT = "TIMED_OUT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one coordinator call.

    Attributes:
        kind: Which variant this is.
        tx_hash: Hash of the submitted envelope.
        state: Final state of the logical submission.
        attempts: Submission attempts made (0 if only lookups happened).
        ledger: Ledger that included the transaction (SUCCESS).
        result_code: Rejection code (REJECTED).
        operation_codes: Operation-level wire codes (REJECTED).
        status_tag: "PENDING" or "DUPLICATE" (PENDING).
        detail: Human-readable explanation for TIMED_OUT / UNKNOWN.
        diagnostic: Raw gateway diagnostic, if any.
        retry_delays: Backoff delays slept before each resend, in order.
    """

    kind: OutcomeKind
    tx_hash: str
    state: SubmissionState
    attempts: int = 0
    ledger: int | None = None
    result_code: ResultCode | None = None
    operation_codes: tuple[str, ...] = ()
    status_tag: str | None = None
    detail: str | None = None
    diagnostic: dict[str, Any] | None = None
    retry_delays: tuple[float, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def category(self) -> ErrorCategory | None:
        """Error category for REJECTED outcomes, None otherwise."""
        if self.kind is not OutcomeKind.REJECTED:
            return None
        return classify_result_code(self.result_code)

    @property
    def is_expired_confirmed(self) -> bool:
        return self.state is SubmissionState.EXPIRED_CONFIRMED

    def create_account_results(self) -> tuple[CreateAccountResultCode | None, ...]:
        """Operation codes parsed as create-account outcomes (None if not one)."""
        return tuple(parse_create_account_code(code) for code in self.operation_codes)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "tx_hash": self.tx_hash,
            "state": self.state.value,
            "attempts": self.attempts,
        }
        if self.ledger is not None:
            result["ledger"] = self.ledger
        if self.result_code is not None:
            result["result_code"] = self.result_code.value
        if self.operation_codes:
            result["operation_codes"] = list(self.operation_codes)
        if self.status_tag is not None:
            result["status_tag"] = self.status_tag
        if self.detail is not None:
            result["detail"] = self.detail
        if self.retry_delays:
            result["retry_delays"] = list(self.retry_delays)
        return result


@dataclass
class PollState:
    """Mutable tracking record for one logical submission.

    Owned by exactly one coordinator call; never shared.
    """

    tx_hash: str
    time_bound_max: float | None
    submitted_at: float | None = None
    attempt_count: int = 0
    poll_count: int = 0
    transient_failures: int = 0
    last_delay: float = 0.0
    state: SubmissionState = SubmissionState.BUILT
    delays: list[float] = field(default_factory=list)

    def is_expired(self, now: float) -> bool:
        return self.time_bound_max is not None and now > self.time_bound_max

    def remaining(self, now: float) -> float | None:
        """Seconds left in the time-bound window; None if unbounded."""
        if self.time_bound_max is None:
            return None
        return self.time_bound_max - now

    def outcome(self, kind: OutcomeKind, **fields: Any) -> SubmissionOutcome:
        return SubmissionOutcome(
            kind=kind,
            tx_hash=self.tx_hash,
            state=self.state,
            attempts=self.attempt_count,
            retry_delays=tuple(self.delays),
            **fields,
        )
