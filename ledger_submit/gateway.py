"""
Ledger gateway protocol — the network boundary.

Defines the interface the coordinator depends on, not a concrete
implementation. This keeps the coordinator testable and keeps HTTP out
of the retry logic.

Concrete implementations:
    - HttpGateway (REST over an injectable transport)
    - FakeGateway (tests)

The protocol has three methods:
    - submit_async(envelope) → AsyncSubmitResult
    - submit_sync(envelope) → SyncSubmitResult
    - get_transaction(tx_hash) → TxLookupResult

All return frozen dataclasses. Expected outcomes (rejection, pending,
duplicate, gateway timeout, not found) are never exceptions. Transport
failures raise GatewayUnavailable / RateLimited; unparseable replies
raise GatewayProtocolError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from ledger_submit.envelope import TransactionEnvelope
from ledger_submit.result_codes import ResultCode

# =========================================================================
# Status enums
# =========================================================================


class AsyncStatus(StrEnum):
    """Immediate reply to an asynchronous submission."""

    PENDING = "PENDING"
    DUPLICATE = "DUPLICATE"
    ERROR = "ERROR"
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"


class SyncStatus(StrEnum):
    """Reply to a synchronous submission (200 / 400 / 504 equivalents)."""

    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    TIMEOUT = "TIMEOUT"


class LookupStatus(StrEnum):
    """Reply to a transaction lookup by hash."""

    NOT_FOUND = "NOT_FOUND"
    INCLUDED = "INCLUDED"
    FAILED = "FAILED"


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class AsyncSubmitResult:
    """Result of submit_async().

    Attributes:
        status: PENDING, DUPLICATE, ERROR or TRY_AGAIN_LATER.
        tx_hash: Hash the gateway computed. Present for PENDING/DUPLICATE.
        result_code: Parsed code when status is ERROR.
        operation_codes: Operation-level wire codes when status is ERROR.
        diagnostic: Raw diagnostic payload for the caller to inspect.
    """

    status: AsyncStatus
    tx_hash: str | None = None
    result_code: ResultCode | None = None
    operation_codes: tuple[str, ...] = ()
    diagnostic: dict[str, Any] | None = None


@dataclass(frozen=True)
class SyncSubmitResult:
    """Result of submit_sync().

    TIMEOUT is not an error: it only means the outcome is not yet known.

    Attributes:
        status: SUCCESS, REJECTED or TIMEOUT.
        tx_hash: Transaction hash, when the gateway reported one.
        ledger: Ledger sequence that included the transaction (SUCCESS).
        result_code: Parsed code (REJECTED).
        operation_codes: Operation-level wire codes (REJECTED).
        diagnostic: Raw diagnostic payload.
    """

    status: SyncStatus
    tx_hash: str | None = None
    ledger: int | None = None
    result_code: ResultCode | None = None
    operation_codes: tuple[str, ...] = ()
    diagnostic: dict[str, Any] | None = None


@dataclass(frozen=True)
class TxLookupResult:
    """Result of get_transaction().

    Attributes:
        status: NOT_FOUND, INCLUDED (successful) or FAILED (terminal record,
            e.g. TOO_LATE or an included-but-failed transaction).
        tx_hash: The hash that was looked up.
        ledger: Ledger sequence, when the transaction is in a ledger.
        result_code: Parsed code for FAILED records.
        operation_codes: Operation-level wire codes for FAILED records.
        record: Raw record for diagnostics.
    """

    status: LookupStatus
    tx_hash: str
    ledger: int | None = None
    result_code: ResultCode | None = None
    operation_codes: tuple[str, ...] = ()
    record: dict[str, Any] = field(default_factory=dict)


# =========================================================================
# Protocols
# =========================================================================


@runtime_checkable
class LedgerGateway(Protocol):
    """Interface for the remote submission and query API."""

    async def submit_async(self, envelope: TransactionEnvelope) -> AsyncSubmitResult:
        """Send the envelope; the gateway replies immediately."""
        ...

    async def submit_sync(self, envelope: TransactionEnvelope) -> SyncSubmitResult:
        """Send the envelope and wait for inclusion, rejection, or timeout."""
        ...

    async def get_transaction(self, tx_hash: str) -> TxLookupResult:
        """Look up a transaction by hash."""
        ...


@runtime_checkable
class AccountSequenceProvider(Protocol):
    """Fetches the current on-ledger sequence number of an account.

    Implementations must not cache: every call reflects the gateway's
    current view.
    """

    async def get_sequence(self, account: str) -> int:
        """Return the account's current sequence number."""
        ...
