"""
Result codes — translates gateway transaction result strings to ResultCode.

Every code maps to exactly one ErrorCategory, which is what the
coordinator acts on:

    - STRUCTURAL: the envelope itself is wrong. Never retried as-is.
    - TRANSIENT: retry the same envelope after a delay.
    - STATE_DIVERGENCE: ledger state moved. Refresh and rebuild.
    - TERMINAL: surfaced to the caller, never retried automatically.

Wire strings follow the ``tx_*`` / ``op_*`` convention. Unknown strings
parse to None rather than guessing.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCategory(StrEnum):
    """Coarse classification driving retry decisions."""

    STRUCTURAL = "STRUCTURAL"
    TRANSIENT = "TRANSIENT"
    STATE_DIVERGENCE = "STATE_DIVERGENCE"
    TERMINAL = "TERMINAL"


class ResultCode(StrEnum):
    """Transaction-level result codes attached to a rejection."""

    FAILED = "FAILED"
    TOO_EARLY = "TOO_EARLY"
    TOO_LATE = "TOO_LATE"
    MISSING_OPERATION = "MISSING_OPERATION"
    BAD_SEQ = "BAD_SEQ"
    BAD_AUTH = "BAD_AUTH"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    NO_ACCOUNT = "NO_ACCOUNT"
    INSUFFICIENT_FEE = "INSUFFICIENT_FEE"
    BAD_AUTH_EXTRA = "BAD_AUTH_EXTRA"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_SUPPORTED = "NOT_SUPPORTED"
    FEE_BUMP_INNER_FAILED = "FEE_BUMP_INNER_FAILED"
    BAD_SPONSORSHIP = "BAD_SPONSORSHIP"


class CreateAccountResultCode(StrEnum):
    """Operation-level outcomes of a create-account operation."""

    SUCCESS = "SUCCESS"
    MALFORMED = "MALFORMED"
    UNDERFUNDED = "UNDERFUNDED"
    LOW_RESERVE = "LOW_RESERVE"
    ALREADY_EXISTS = "ALREADY_EXISTS"


# ---------------------------------------------------------------------------
# Wire string → enum
# ---------------------------------------------------------------------------

_WIRE_RESULT_CODES: dict[str, ResultCode] = {
    "tx_failed": ResultCode.FAILED,
    "tx_too_early": ResultCode.TOO_EARLY,
    "tx_too_late": ResultCode.TOO_LATE,
    "tx_missing_operation": ResultCode.MISSING_OPERATION,
    "tx_bad_seq": ResultCode.BAD_SEQ,
    "tx_bad_auth": ResultCode.BAD_AUTH,
    "tx_insufficient_balance": ResultCode.INSUFFICIENT_BALANCE,
    "tx_no_source_account": ResultCode.NO_ACCOUNT,
    "tx_insufficient_fee": ResultCode.INSUFFICIENT_FEE,
    "tx_bad_auth_extra": ResultCode.BAD_AUTH_EXTRA,
    "tx_internal_error": ResultCode.INTERNAL_ERROR,
    "tx_not_supported": ResultCode.NOT_SUPPORTED,
    "tx_fee_bump_inner_failed": ResultCode.FEE_BUMP_INNER_FAILED,
    "tx_bad_sponsorship": ResultCode.BAD_SPONSORSHIP,
}

_WIRE_CREATE_ACCOUNT_CODES: dict[str, CreateAccountResultCode] = {
    "op_success": CreateAccountResultCode.SUCCESS,
    "op_malformed": CreateAccountResultCode.MALFORMED,
    "op_underfunded": CreateAccountResultCode.UNDERFUNDED,
    "op_low_reserve": CreateAccountResultCode.LOW_RESERVE,
    "op_already_exists": CreateAccountResultCode.ALREADY_EXISTS,
}

# ---------------------------------------------------------------------------
# ResultCode → category and advice
# ---------------------------------------------------------------------------

_CATEGORIES: dict[ResultCode, ErrorCategory] = {
    ResultCode.FAILED: ErrorCategory.TERMINAL,
    ResultCode.TOO_EARLY: ErrorCategory.STRUCTURAL,
    ResultCode.TOO_LATE: ErrorCategory.STATE_DIVERGENCE,
    ResultCode.MISSING_OPERATION: ErrorCategory.STRUCTURAL,
    ResultCode.BAD_SEQ: ErrorCategory.STATE_DIVERGENCE,
    ResultCode.BAD_AUTH: ErrorCategory.STRUCTURAL,
    ResultCode.INSUFFICIENT_BALANCE: ErrorCategory.TERMINAL,
    ResultCode.NO_ACCOUNT: ErrorCategory.TERMINAL,
    ResultCode.INSUFFICIENT_FEE: ErrorCategory.STRUCTURAL,
    ResultCode.BAD_AUTH_EXTRA: ErrorCategory.STRUCTURAL,
    ResultCode.INTERNAL_ERROR: ErrorCategory.TERMINAL,
    ResultCode.NOT_SUPPORTED: ErrorCategory.TERMINAL,
    ResultCode.FEE_BUMP_INNER_FAILED: ErrorCategory.TERMINAL,
    ResultCode.BAD_SPONSORSHIP: ErrorCategory.TERMINAL,
}

_ADVICE: dict[ResultCode, str] = {
    ResultCode.FAILED: "an operation failed; inspect operation codes",
    ResultCode.TOO_EARLY: "before min time; rebuild with adjusted bounds",
    ResultCode.TOO_LATE: "after max time; rebuild with new bounds as a new submission",
    ResultCode.MISSING_OPERATION: "no operations; fix and resubmit",
    ResultCode.BAD_SEQ: "sequence mismatch; refresh sequence, rebuild, resubmit",
    ResultCode.BAD_AUTH: "insufficient or wrong signatures; fix signing",
    ResultCode.INSUFFICIENT_BALANCE: "would breach minimum reserve; add funds",
    ResultCode.NO_ACCOUNT: "source account missing",
    ResultCode.INSUFFICIENT_FEE: "fee below required floor; raise fee and resubmit",
    ResultCode.BAD_AUTH_EXTRA: "superfluous signatures; remove and resubmit",
    ResultCode.INTERNAL_ERROR: "unknown gateway error",
    ResultCode.NOT_SUPPORTED: "unsupported transaction kind",
    ResultCode.FEE_BUMP_INNER_FAILED: "inner transaction failed; inspect inner result",
    ResultCode.BAD_SPONSORSHIP: "sponsorship unconfirmed",
}


def parse_result_code(raw: str | None) -> ResultCode | None:
    """Map a wire result string (e.g. "tx_bad_seq") to a ResultCode.

    Enum member names ("BAD_SEQ") are accepted too. Returns None for
    None, empty, or unrecognized strings.
    """
    if not raw:
        return None
    code = _WIRE_RESULT_CODES.get(raw)
    if code is not None:
        return code
    try:
        return ResultCode(raw)
    except ValueError:
        return None


def parse_create_account_code(raw: str | None) -> CreateAccountResultCode | None:
    """Map a wire operation string (e.g. "op_low_reserve") to a create-account code."""
    if not raw:
        return None
    return _WIRE_CREATE_ACCOUNT_CODES.get(raw)


def classify_result_code(code: ResultCode | None) -> ErrorCategory:
    """Return the ErrorCategory for a result code.

    None (no code reported) is treated as TERMINAL: without a code there
    is nothing safe to retry.
    """
    if code is None:
        return ErrorCategory.TERMINAL
    return _CATEGORIES[code]


def retry_advice(code: ResultCode) -> str:
    """Human-readable next step for a rejected transaction."""
    return _ADVICE[code]
