"""
Transaction envelope — the signed payload submitted to the ledger.

An envelope is immutable. Any change (sequence, bounds, fee, operations)
produces a different transaction hash and therefore a different logical
submission. Blind resubmission is only safe for the exact same envelope,
which is why ``to_blob()`` is deterministic.

Hash computation:
    tx_hash = sha256(canonical_json(body_dict()))

    The body excludes signatures: adding or removing a signature does not
    change what the ledger executes, only whether it is authorized.

Invariants:
    - source_account non-empty.
    - sequence >= 0.
    - fee >= 0.
    - operations non-empty.
    - time_bound_min <= time_bound_max when both are set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ledger_submit.encoding import canonical_json_bytes, decode_blob, encode_blob, sha256_hex

# Bump when body_dict() shape changes.
ENVELOPE_VERSION = "1"

OP_CREATE_ACCOUNT = "create_account"
OP_PAYMENT = "payment"


@dataclass(frozen=True)
class Operation:
    """One ledger operation.

    Attributes:
        type: Operation kind (e.g. "create_account", "payment").
        params: Operation parameters. Values must be JSON-serializable.
        source_account: Optional per-operation source override.
    """

    type: str
    params: dict[str, Any] = field(default_factory=dict)
    source_account: str | None = None

    def __post_init__(self) -> None:
        if not self.type:
            raise ValueError("operation type must be non-empty")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "params": dict(self.params)}
        if self.source_account is not None:
            result["source_account"] = self.source_account
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Operation:
        return cls(
            type=data["type"],
            params=dict(data.get("params", {})),
            source_account=data.get("source_account"),
        )


def create_account(destination: str, starting_balance: str) -> Operation:
    """Build a create-account operation funding ``destination``."""
    if not destination:
        raise ValueError("destination must be non-empty")
    return Operation(
        type=OP_CREATE_ACCOUNT,
        params={"destination": destination, "starting_balance": starting_balance},
    )


def payment(destination: str, amount: str, asset: str = "native") -> Operation:
    """Build a payment operation."""
    if not destination:
        raise ValueError("destination must be non-empty")
    return Operation(
        type=OP_PAYMENT,
        params={"destination": destination, "amount": amount, "asset": asset},
    )


@dataclass(frozen=True)
class Signature:
    """A detached signature over the transaction hash.

    Attributes:
        key_id: Public identifier of the signing key (hex public key).
        signature: Hex-encoded signature bytes.
    """

    key_id: str
    signature: str

    def to_dict(self) -> dict[str, str]:
        return {"key_id": self.key_id, "signature": self.signature}


@dataclass(frozen=True)
class TransactionEnvelope:
    """A (possibly signed) transaction.

    Attributes:
        source_account: Account whose sequence number this consumes.
        sequence: Sequence number, monotonic per source account.
        operations: Ordered, non-empty operations.
        fee: Maximum fee the source is willing to pay.
        time_bound_max: Epoch seconds after which the ledger rejects the
            envelope. None means unbounded: expiry can never be declared.
        time_bound_min: Epoch seconds before which the ledger rejects it.
        memo: Optional free-text memo.
        signatures: Signatures over tx_hash().
    """

    source_account: str
    sequence: int
    operations: tuple[Operation, ...]
    fee: int = 100
    time_bound_max: float | None = None
    time_bound_min: float | None = None
    memo: str | None = None
    signatures: tuple[Signature, ...] = ()

    def __post_init__(self) -> None:
        if not self.source_account:
            raise ValueError("source_account must be non-empty")
        if self.sequence < 0:
            raise ValueError(f"sequence must be >= 0, got: {self.sequence}")
        if self.fee < 0:
            raise ValueError(f"fee must be >= 0, got: {self.fee}")
        if not self.operations:
            raise ValueError("operations must be non-empty")
        if (
            self.time_bound_min is not None
            and self.time_bound_max is not None
            and self.time_bound_min > self.time_bound_max
        ):
            raise ValueError(
                f"time_bound_min ({self.time_bound_min}) is after "
                f"time_bound_max ({self.time_bound_max})"
            )

    # -----------------------------------------------------------------
    # Identity
    # -----------------------------------------------------------------

    def body_dict(self) -> dict[str, Any]:
        """Canonical unsigned body. Optional fields that are None are omitted."""
        body: dict[str, Any] = {
            "envelope_version": ENVELOPE_VERSION,
            "source_account": self.source_account,
            "sequence": self.sequence,
            "fee": self.fee,
            "operations": [op.to_dict() for op in self.operations],
        }
        if self.time_bound_min is not None or self.time_bound_max is not None:
            bounds: dict[str, float] = {}
            if self.time_bound_min is not None:
                bounds["min"] = self.time_bound_min
            if self.time_bound_max is not None:
                bounds["max"] = self.time_bound_max
            body["time_bounds"] = bounds
        if self.memo is not None:
            body["memo"] = self.memo
        return body

    def tx_hash(self) -> str:
        """Transaction hash (64 hex chars) of the unsigned body."""
        return sha256_hex(canonical_json_bytes(self.body_dict()))

    @property
    def is_signed(self) -> bool:
        return bool(self.signatures)

    def is_expired(self, now: float) -> bool:
        """True once ``now`` is past time_bound_max. Unbounded never expires."""
        return self.time_bound_max is not None and now > self.time_bound_max

    # -----------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx": self.body_dict(),
            "signatures": [sig.to_dict() for sig in self.signatures],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionEnvelope:
        body = data["tx"]
        if body.get("envelope_version") != ENVELOPE_VERSION:
            raise ValueError(
                f"unsupported envelope_version: {body.get('envelope_version')!r}"
            )
        bounds = body.get("time_bounds", {})
        return cls(
            source_account=body["source_account"],
            sequence=int(body["sequence"]),
            operations=tuple(Operation.from_dict(op) for op in body["operations"]),
            fee=int(body["fee"]),
            time_bound_max=bounds.get("max"),
            time_bound_min=bounds.get("min"),
            memo=body.get("memo"),
            signatures=tuple(
                Signature(key_id=s["key_id"], signature=s["signature"])
                for s in data.get("signatures", [])
            ),
        )

    def to_blob(self) -> str:
        """Deterministic base64 wire form, including signatures."""
        return encode_blob(self.to_dict())

    @classmethod
    def from_blob(cls, blob: str) -> TransactionEnvelope:
        return cls.from_dict(decode_blob(blob))
