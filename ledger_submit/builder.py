"""
Envelope builder.

Builds and signs envelopes from a sequence number and operations. Pure
apart from the injected clock: no network calls. Sequence numbers are
always passed in explicitly; the builder never caches them, so a
rebuild after a sequence refresh always uses the freshly fetched value.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import replace
from typing import Callable

from ledger_submit.envelope import Operation, TransactionEnvelope
from ledger_submit.signer import EnvelopeSigner

DEFAULT_BASE_FEE = 100
DEFAULT_VALIDITY_WINDOW = 300.0


class EnvelopeBuilder:
    """Builds signed envelopes for one source account.

    Args:
        source_account: Account the envelopes are sourced from.
        signers: Signers applied in order. At least one.
        base_fee: Fee per operation.
        validity_window: Seconds from build time to time_bound_max.
        clock: Returns epoch seconds. Inject for tests.
    """

    def __init__(
        self,
        source_account: str,
        signers: Sequence[EnvelopeSigner],
        *,
        base_fee: int = DEFAULT_BASE_FEE,
        validity_window: float = DEFAULT_VALIDITY_WINDOW,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if not source_account:
            raise ValueError("source_account must be non-empty")
        if not signers:
            raise ValueError("at least one signer is required")
        if validity_window <= 0:
            raise ValueError(f"validity_window must be > 0, got: {validity_window}")
        self._source_account = source_account
        self._signers = tuple(signers)
        self._base_fee = base_fee
        self._validity_window = validity_window
        self._clock = clock or time.time

    @property
    def source_account(self) -> str:
        return self._source_account

    def build(
        self,
        sequence: int,
        operations: Sequence[Operation],
        *,
        fee: int | None = None,
        time_bound_max: float | None = None,
        time_bound_min: float | None = None,
        memo: str | None = None,
    ) -> TransactionEnvelope:
        """Build and sign a new envelope.

        ``time_bound_max`` defaults to now + validity_window. ``fee``
        defaults to base_fee per operation.
        """
        if time_bound_max is None:
            time_bound_max = self._clock() + self._validity_window
        if fee is None:
            fee = self._base_fee * len(operations)
        envelope = TransactionEnvelope(
            source_account=self._source_account,
            sequence=sequence,
            operations=tuple(operations),
            fee=fee,
            time_bound_max=time_bound_max,
            time_bound_min=time_bound_min,
            memo=memo,
        )
        return self._sign(envelope)

    def rebuild(
        self,
        envelope: TransactionEnvelope,
        *,
        sequence: int,
        fee: int | None = None,
    ) -> TransactionEnvelope:
        """Rebuild ``envelope`` with a new sequence and a fresh time-bound.

        Operations and memo are kept. Old signatures are dropped: they
        cover the old hash. The result is a new logical submission.
        """
        if envelope.source_account != self._source_account:
            raise ValueError(
                f"envelope source {envelope.source_account!r} does not match "
                f"builder source {self._source_account!r}"
            )
        rebuilt = replace(
            envelope,
            sequence=sequence,
            fee=envelope.fee if fee is None else fee,
            time_bound_max=self._clock() + self._validity_window,
            time_bound_min=None,
            signatures=(),
        )
        return self._sign(rebuilt)

    def _sign(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        for signer in self._signers:
            envelope = signer.sign(envelope)
        return envelope
