"""
Submission coordinator.

Owns the lifecycle of one logical submission: send, classify the reply,
decide whether to poll, retry, or stop. The gateway and sequence
provider are injected; so are ``clock`` and ``sleep``, which makes every
suspension point (submit, lookup, backoff delay) drivable by a virtual
clock in tests.

Rules enforced here:
    - An envelope whose time-bound has elapsed is never sent again. It
      is resolved by lookup only.
    - Transient failures (TRY_AGAIN_LATER, 429, connection errors)
      resubmit the same envelope after a non-decreasing delay, never
      past expiry and never more than ``max_attempts`` times.
    - A sync gateway timeout is not an error. The coordinator polls by
      hash until the time-bound elapses, then polls exactly once more.
    - Rejections are surfaced unchanged. Terminal codes are never retried.
    - Sequence refresh + rebuild happens only in ``resubmit_rebuilt()``,
      which the caller invokes, and only for provably unconsumed
      envelopes (BAD_SEQ rejection or confirmed expiry).

Nothing is persisted. Each call owns its own PollState, so one
coordinator can drive any number of concurrent submissions.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable

from ledger_submit.builder import EnvelopeBuilder
from ledger_submit.config import UNBOUNDED_POLL_LIMIT, CoordinatorConfig
from ledger_submit.envelope import TransactionEnvelope
from ledger_submit.errors import GatewayUnavailable, RateLimited, SequenceRefreshError
from ledger_submit.gateway import (
    AccountSequenceProvider,
    AsyncStatus,
    LedgerGateway,
    LookupStatus,
    SyncStatus,
    TxLookupResult,
)
from ledger_submit.outcome import (
    OutcomeKind,
    PollState,
    SubmissionOutcome,
    SubmissionState,
    SubmitMode,
)
from ledger_submit.result_codes import ResultCode, classify_result_code

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Resubmission:
    """Result of resubmit_rebuilt(): the new envelope and its outcome."""

    envelope: TransactionEnvelope
    outcome: SubmissionOutcome


class SubmissionCoordinator:
    """Drives envelopes through submission, polling and retry.

    Args:
        gateway: Remote submission/query API.
        sequence_provider: Source of fresh sequence numbers. Only needed
            for resubmit_rebuilt().
        config: Retry and polling knobs. Defaults to CoordinatorConfig().
        clock: Returns epoch seconds. Default: time.time.
        sleep: Async delay. Default: asyncio.sleep.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        sequence_provider: AccountSequenceProvider | None = None,
        *,
        config: CoordinatorConfig | None = None,
        clock: Callable[[], float] | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._gateway = gateway
        self._sequence_provider = sequence_provider
        self._config = config or CoordinatorConfig()
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    # =================================================================
    # Public API
    # =================================================================

    async def submit(
        self,
        envelope: TransactionEnvelope,
        mode: SubmitMode | str = SubmitMode.SYNC,
    ) -> SubmissionOutcome:
        """Submit one envelope and classify the result.

        Async mode sends once (plus TRY_AGAIN_LATER retries) and returns
        PENDING without polling. Sync mode waits for a definitive answer,
        polling by hash after a gateway timeout.

        Cancelling the calling task abandons the submission locally; the
        gateway may still include the transaction later.
        """
        mode = SubmitMode(mode)
        state = PollState(tx_hash=envelope.tx_hash(), time_bound_max=envelope.time_bound_max)
        if envelope.time_bound_max is None:
            logger.warning(
                "submission.unbounded",
                extra={"tx_hash": state.tx_hash, "sequence": envelope.sequence},
            )

        try:
            if mode is SubmitMode.ASYNC:
                outcome = await self._run_async(envelope, state)
            else:
                outcome = await self._run_sync(envelope, state)
        except asyncio.CancelledError:
            logger.info(
                "submission.cancelled",
                extra={"tx_hash": state.tx_hash, "attempts": state.attempt_count},
            )
            raise

        logger.info("submission.outcome", extra=outcome.to_dict())
        return outcome

    async def poll(
        self,
        tx_hash: str,
        *,
        time_bound_max: float | None = None,
    ) -> SubmissionOutcome:
        """Look up a transaction once and classify the answer.

        For callers driving their own cadence after an async submission.
        Not found before expiry → PENDING. Not found after expiry, or the
        lookup itself failed → UNKNOWN.
        """
        state = PollState(tx_hash=tx_hash, time_bound_max=time_bound_max)
        state.state = SubmissionState.PENDING
        expired = state.is_expired(self._clock())
        state.poll_count += 1
        try:
            lookup = await self._gateway.get_transaction(tx_hash)
        except GatewayUnavailable as exc:
            return state.outcome(OutcomeKind.UNKNOWN, detail=f"lookup failed: {exc}")

        outcome = self._classify_lookup(state, lookup)
        if outcome is not None:
            return outcome
        if expired:
            return state.outcome(
                OutcomeKind.UNKNOWN,
                detail="time bound elapsed; not found and no expiry confirmation",
            )
        return state.outcome(OutcomeKind.PENDING, status_tag=AsyncStatus.PENDING.value)

    async def wait_for_inclusion(
        self,
        tx_hash: str,
        *,
        time_bound_max: float | None = None,
    ) -> SubmissionOutcome:
        """Poll until inclusion, a terminal record, or confirmed expiry.

        Same loop sync mode runs after a gateway timeout.
        """
        state = PollState(tx_hash=tx_hash, time_bound_max=time_bound_max)
        state.state = SubmissionState.PENDING
        return await self._await_inclusion(state)

    async def resubmit_rebuilt(
        self,
        outcome: SubmissionOutcome,
        envelope: TransactionEnvelope,
        builder: EnvelopeBuilder,
        mode: SubmitMode | str = SubmitMode.SYNC,
    ) -> Resubmission:
        """Refresh the sequence number, rebuild, and submit as a new submission.

        Only allowed when ``outcome`` proves ``envelope`` was not consumed:
        a BAD_SEQ rejection or a confirmed expiry.

        Raises:
            ValueError: If the outcome does not belong to the envelope, the
                envelope is not provably unconsumed, or no sequence
                provider is configured.
            SequenceRefreshError: If after BAD_SEQ the refreshed sequence
                would not advance past the rejected one.
        """
        old_hash = envelope.tx_hash()
        if outcome.tx_hash != old_hash:
            raise ValueError(
                f"outcome is for {outcome.tx_hash}, not envelope {old_hash}"
            )
        bad_seq = (
            outcome.kind is OutcomeKind.REJECTED and outcome.result_code is ResultCode.BAD_SEQ
        )
        if not (bad_seq or outcome.is_expired_confirmed):
            raise ValueError(
                f"envelope {old_hash} is not provably unconsumed "
                f"(kind={outcome.kind}, state={outcome.state}); refusing to rebuild"
            )
        if self._sequence_provider is None:
            raise ValueError("resubmit_rebuilt requires an AccountSequenceProvider")

        current = await self._sequence_provider.get_sequence(envelope.source_account)
        next_sequence = current + 1
        if bad_seq and next_sequence <= envelope.sequence:
            raise SequenceRefreshError(
                f"refreshed sequence {next_sequence} does not advance past "
                f"rejected sequence {envelope.sequence} for {envelope.source_account}"
            )

        rebuilt = builder.rebuild(envelope, sequence=next_sequence)
        logger.info(
            "submission.rebuilt",
            extra={
                "old_tx_hash": old_hash,
                "new_tx_hash": rebuilt.tx_hash(),
                "old_sequence": envelope.sequence,
                "new_sequence": next_sequence,
            },
        )
        return Resubmission(envelope=rebuilt, outcome=await self.submit(rebuilt, mode))

    # =================================================================
    # Submission loops
    # =================================================================

    async def _run_async(
        self,
        envelope: TransactionEnvelope,
        state: PollState,
    ) -> SubmissionOutcome:
        while True:
            if state.is_expired(self._clock()):
                return await self._resolve_expired(state)

            self._mark_submitted(state)
            try:
                result = await self._gateway.submit_async(envelope)
            except GatewayUnavailable as exc:
                if not await self._back_off(state, exc):
                    return self._exhausted(state, str(exc))
                continue

            if result.status is AsyncStatus.TRY_AGAIN_LATER:
                if not await self._back_off(state, None):
                    return self._exhausted(state, "gateway kept answering TRY_AGAIN_LATER")
                continue

            if result.status is AsyncStatus.ERROR:
                return await self._rejected(
                    state, result.result_code, result.operation_codes, result.diagnostic
                )

            # PENDING or DUPLICATE: in flight; the caller polls.
            state.state = SubmissionState.PENDING
            return state.outcome(OutcomeKind.PENDING, status_tag=result.status.value)

    async def _run_sync(
        self,
        envelope: TransactionEnvelope,
        state: PollState,
    ) -> SubmissionOutcome:
        while True:
            if state.is_expired(self._clock()):
                return await self._resolve_expired(state)

            self._mark_submitted(state)
            try:
                result = await self._gateway.submit_sync(envelope)
            except GatewayUnavailable as exc:
                if not await self._back_off(state, exc):
                    return self._exhausted(state, str(exc))
                continue

            if result.status is SyncStatus.SUCCESS:
                state.state = SubmissionState.SUCCEEDED
                return state.outcome(OutcomeKind.SUCCESS, ledger=result.ledger)

            if result.status is SyncStatus.REJECTED:
                return await self._rejected(
                    state, result.result_code, result.operation_codes, result.diagnostic
                )

            logger.info(
                "submission.gateway_timeout",
                extra={"tx_hash": state.tx_hash, "attempts": state.attempt_count},
            )
            state.state = SubmissionState.PENDING
            return await self._await_inclusion(state)

    # =================================================================
    # Polling
    # =================================================================

    async def _await_inclusion(self, state: PollState) -> SubmissionOutcome:
        limit = self._config.max_polls
        if limit is None and state.time_bound_max is None:
            limit = UNBOUNDED_POLL_LIMIT
        state.transient_failures = 0
        await self._wait_for_confirmation_window(state)

        while True:
            final = state.is_expired(self._clock())
            state.poll_count += 1
            try:
                lookup = await self._gateway.get_transaction(state.tx_hash)
            except GatewayUnavailable as exc:
                state.transient_failures += 1
                if state.transient_failures >= self._config.max_attempts:
                    return state.outcome(
                        OutcomeKind.UNKNOWN,
                        detail=f"lookups failing after {state.transient_failures} tries: {exc}",
                    )
                base = self._lookup_delay(state.transient_failures, exc)
                await self._sleep(self._poll_delay(state, base))
                continue
            state.transient_failures = 0

            outcome = self._classify_lookup(state, lookup)
            if outcome is not None:
                return outcome

            if final:
                logger.info(
                    "submission.expiry_unconfirmed",
                    extra={"tx_hash": state.tx_hash, "polls": state.poll_count},
                )
                return state.outcome(
                    OutcomeKind.UNKNOWN,
                    detail="time bound elapsed; not found and no expiry confirmation",
                )
            if limit is not None and state.poll_count >= limit:
                return state.outcome(
                    OutcomeKind.TIMED_OUT,
                    detail=f"not included after {state.poll_count} lookups",
                )
            await self._sleep(self._poll_delay(state, self._config.poll_interval))

    async def _resolve_expired(self, state: PollState) -> SubmissionOutcome:
        # Never resend an expired envelope; only ask what became of it.
        logger.info(
            "submission.expired_before_send",
            extra={"tx_hash": state.tx_hash, "attempts": state.attempt_count},
        )
        state.state = SubmissionState.PENDING
        return await self._await_inclusion(state)

    async def _wait_for_confirmation_window(self, state: PollState) -> None:
        """Hold the first lookup of an already-expired envelope until the margin."""
        if state.time_bound_max is None:
            return
        now = self._clock()
        if not state.is_expired(now):
            return
        wait = state.time_bound_max + self._config.expiry_margin - now
        if wait > 0:
            await self._sleep(wait)

    def _lookup_delay(self, failures: int, exc: GatewayUnavailable) -> float:
        delay = self._config.backoff.delay(failures)
        if isinstance(exc, RateLimited) and exc.retry_after is not None:
            delay = max(delay, exc.retry_after)
        return delay

    def _poll_delay(self, state: PollState, base: float) -> float:
        """Cap a delay so the confirming lookup lands just after expiry."""
        remaining = state.remaining(self._clock())
        if remaining is None:
            return base
        return min(base, max(remaining, 0.0) + self._config.expiry_margin)

    def _classify_lookup(
        self,
        state: PollState,
        lookup: TxLookupResult,
    ) -> SubmissionOutcome | None:
        if lookup.status is LookupStatus.INCLUDED:
            state.state = SubmissionState.SUCCEEDED
            return state.outcome(OutcomeKind.SUCCESS, ledger=lookup.ledger)
        if lookup.status is LookupStatus.FAILED:
            self._mark_rejected(state, lookup.result_code)
            return state.outcome(
                OutcomeKind.REJECTED,
                ledger=lookup.ledger,
                result_code=lookup.result_code,
                operation_codes=lookup.operation_codes,
                diagnostic=lookup.record or None,
            )
        return None

    # =================================================================
    # Helpers
    # =================================================================

    def _mark_submitted(self, state: PollState) -> None:
        state.attempt_count += 1
        if state.submitted_at is None:
            state.submitted_at = self._clock()
        state.state = SubmissionState.SUBMITTED

    def _mark_rejected(self, state: PollState, code: ResultCode | None) -> None:
        if code is ResultCode.TOO_LATE:
            state.state = SubmissionState.EXPIRED_CONFIRMED
        else:
            state.state = SubmissionState.REJECTED
        logger.info(
            "submission.rejected",
            extra={
                "tx_hash": state.tx_hash,
                "result_code": str(code) if code is not None else None,
                "category": str(classify_result_code(code)),
            },
        )

    async def _rejected(
        self,
        state: PollState,
        code: ResultCode | None,
        operation_codes: tuple[str, ...],
        diagnostic: dict[str, object] | None,
    ) -> SubmissionOutcome:
        # After a retried send, BAD_SEQ may mean an earlier attempt of this
        # same envelope already landed. Only a NOT_FOUND answer lets BAD_SEQ
        # stand; an unanswered lookup leaves the outcome UNKNOWN.
        if code is ResultCode.BAD_SEQ and state.attempt_count > 1:
            lookup = await self._verify_lookup(state)
            if lookup is None:
                return state.outcome(
                    OutcomeKind.UNKNOWN,
                    result_code=code,
                    operation_codes=operation_codes,
                    detail="BAD_SEQ after a retried send; earlier attempt could not be checked",
                    diagnostic=diagnostic,
                )
            outcome = self._classify_lookup(state, lookup)
            if outcome is not None:
                return outcome

        self._mark_rejected(state, code)
        return state.outcome(
            OutcomeKind.REJECTED,
            result_code=code,
            operation_codes=operation_codes,
            diagnostic=diagnostic,
        )

    async def _verify_lookup(self, state: PollState) -> TxLookupResult | None:
        """Look the hash up, retrying transient failures. None if every try failed."""
        failures = 0
        while True:
            state.poll_count += 1
            try:
                return await self._gateway.get_transaction(state.tx_hash)
            except GatewayUnavailable as exc:
                failures += 1
                if failures >= self._config.max_attempts:
                    logger.warning(
                        "submission.verify_failed",
                        extra={"tx_hash": state.tx_hash, "tries": failures, "error": str(exc)},
                    )
                    return None
                await self._sleep(self._lookup_delay(failures, exc))

    async def _back_off(self, state: PollState, exc: GatewayUnavailable | None) -> bool:
        """Sleep before the next attempt. False if no attempt may follow."""
        if state.attempt_count >= self._config.max_attempts:
            return False
        delay = self._config.backoff.delay(state.attempt_count)
        if isinstance(exc, RateLimited) and exc.retry_after is not None:
            delay = max(delay, exc.retry_after)
        delay = max(delay, state.last_delay)

        remaining = state.remaining(self._clock())
        if remaining is not None and delay >= remaining:
            logger.info(
                "submission.window_exhausted",
                extra={"tx_hash": state.tx_hash, "delay": delay, "remaining": remaining},
            )
            return False

        state.last_delay = delay
        state.delays.append(delay)
        logger.info(
            "submission.retry",
            extra={
                "tx_hash": state.tx_hash,
                "attempt": state.attempt_count,
                "delay": delay,
                "reason": exc.error_code if exc is not None else AsyncStatus.TRY_AGAIN_LATER.value,
            },
        )
        await self._sleep(delay)
        return True

    def _exhausted(self, state: PollState, reason: str) -> SubmissionOutcome:
        return state.outcome(
            OutcomeKind.TIMED_OUT,
            detail=f"gave up after {state.attempt_count} attempts: {reason}",
        )
