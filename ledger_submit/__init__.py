"""
ledger-submit — reliable transaction submission for ledger gateways.

Public API:

    Coordinator (network I/O):
        - ``SubmissionCoordinator`` — submit, poll, wait, rebuild-and-resubmit.
        - ``SubmissionOutcome`` / ``OutcomeKind`` / ``SubmissionState`` — results.
        - ``SubmitMode`` — sync or async submission.

    Envelopes (pure):
        - ``TransactionEnvelope``, ``Operation``, ``create_account``, ``payment``.
        - ``EnvelopeBuilder`` — build and rebuild signed envelopes.
        - ``Ed25519Signer`` / ``EnvelopeSigner`` — signing boundary.

    Protocols (for dependency injection):
        - ``LedgerGateway`` — submit and look up transactions.
        - ``AccountSequenceProvider`` — fetch current sequence numbers.
        - ``HttpTransport`` — HTTP seam under HttpGateway.

    Concrete gateway:
        - ``HttpGateway`` / ``create_gateway`` — REST gateway over httpx.

    Result codes and errors:
        - ``ResultCode``, ``CreateAccountResultCode``, ``ErrorCategory``.
        - ``classify_result_code()``, ``parse_result_code()``.
        - ``LedgerSubmitError`` and subclasses.

    Configuration:
        - ``CoordinatorConfig``, ``BackoffPolicy``, ``BackoffKind``.
"""

from ledger_submit.backoff import BackoffKind, BackoffPolicy
from ledger_submit.builder import EnvelopeBuilder
from ledger_submit.config import CoordinatorConfig
from ledger_submit.coordinator import Resubmission, SubmissionCoordinator
from ledger_submit.envelope import (
    Operation,
    Signature,
    TransactionEnvelope,
    create_account,
    payment,
)
from ledger_submit.errors import (
    GatewayError,
    GatewayProtocolError,
    GatewayUnavailable,
    LedgerSubmitError,
    RateLimited,
    SequenceRefreshError,
    classify_exception,
)
from ledger_submit.gateway import (
    AccountSequenceProvider,
    AsyncStatus,
    AsyncSubmitResult,
    LedgerGateway,
    LookupStatus,
    SyncStatus,
    SyncSubmitResult,
    TxLookupResult,
)
from ledger_submit.http_gateway import HttpGateway, create_gateway
from ledger_submit.outcome import (
    OutcomeKind,
    PollState,
    SubmissionOutcome,
    SubmissionState,
    SubmitMode,
)
from ledger_submit.result_codes import (
    CreateAccountResultCode,
    ErrorCategory,
    ResultCode,
    classify_result_code,
    parse_result_code,
    retry_advice,
)
from ledger_submit.signer import Ed25519Signer, EnvelopeSigner, verify_envelope
from ledger_submit.transport import HttpResponse, HttpTransport, HttpxTransport

__version__ = "0.1.0"

__all__ = [
    "AccountSequenceProvider",
    "AsyncStatus",
    "AsyncSubmitResult",
    "BackoffKind",
    "BackoffPolicy",
    "CoordinatorConfig",
    "CreateAccountResultCode",
    "Ed25519Signer",
    "EnvelopeBuilder",
    "EnvelopeSigner",
    "ErrorCategory",
    "GatewayError",
    "GatewayProtocolError",
    "GatewayUnavailable",
    "HttpGateway",
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
    "LedgerGateway",
    "LedgerSubmitError",
    "LookupStatus",
    "Operation",
    "OutcomeKind",
    "PollState",
    "RateLimited",
    "Resubmission",
    "ResultCode",
    "SequenceRefreshError",
    "Signature",
    "SubmissionCoordinator",
    "SubmissionOutcome",
    "SubmissionState",
    "SubmitMode",
    "SyncStatus",
    "SyncSubmitResult",
    "TransactionEnvelope",
    "TxLookupResult",
    "classify_exception",
    "classify_result_code",
    "create_account",
    "create_gateway",
    "parse_result_code",
    "payment",
    "retry_advice",
    "verify_envelope",
]
