"""
HTTP gateway — REST implementation of LedgerGateway and
AccountSequenceProvider.

Translates gateway replies into AsyncSubmitResult / SyncSubmitResult /
TxLookupResult. Uses an injectable transport (HttpTransport) so the HTTP
layer can be swapped for test fakes without changing parsing logic.

No retry loops. No secrets. Retry and polling policy live in the
coordinator.

Endpoints:
    POST {base}/transactions_async   tx=<blob>
        201 PENDING, 409 DUPLICATE, 400 ERROR, 503 TRY_AGAIN_LATER
    POST {base}/transactions         tx=<blob>
        200 included, 400 rejected (problem document), 504 timeout
    GET  {base}/transactions/{hash}
        404 not found, 200 record (successful true/false)
    GET  {base}/accounts/{account}
        200 {"sequence": "<int>"}

Any endpoint: 429 → RateLimited, other 5xx → GatewayUnavailable.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from ledger_submit.envelope import TransactionEnvelope
from ledger_submit.errors import GatewayProtocolError, GatewayUnavailable, RateLimited
from ledger_submit.gateway import (
    AsyncStatus,
    AsyncSubmitResult,
    LookupStatus,
    SyncStatus,
    SyncSubmitResult,
    TxLookupResult,
)
from ledger_submit.result_codes import parse_result_code
from ledger_submit.transport import HttpResponse, HttpTransport, HttpxTransport

logger = logging.getLogger(__name__)

_ASYNC_STATUS_BY_HTTP: dict[int, AsyncStatus] = {
    201: AsyncStatus.PENDING,
    409: AsyncStatus.DUPLICATE,
    400: AsyncStatus.ERROR,
    503: AsyncStatus.TRY_AGAIN_LATER,
}


class HttpGateway:
    """LedgerGateway and AccountSequenceProvider over HTTP.

    Args:
        base_url: Gateway root URL (e.g. "https://gateway.example.com").
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        base_url: str,
        transport: HttpTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport or HttpxTransport()

    @property
    def base_url(self) -> str:
        return self._base_url

    # -----------------------------------------------------------------
    # LedgerGateway
    # -----------------------------------------------------------------

    async def submit_async(self, envelope: TransactionEnvelope) -> AsyncSubmitResult:
        url = f"{self._base_url}/transactions_async"
        response = await self._transport.request("POST", url, form={"tx": envelope.to_blob()})
        logger.debug(
            "gateway.submit_async",
            extra={"tx_hash": envelope.tx_hash(), "status_code": response.status_code},
        )
        return _parse_async_response(response, url)

    async def submit_sync(self, envelope: TransactionEnvelope) -> SyncSubmitResult:
        url = f"{self._base_url}/transactions"
        response = await self._transport.request("POST", url, form={"tx": envelope.to_blob()})
        logger.debug(
            "gateway.submit_sync",
            extra={"tx_hash": envelope.tx_hash(), "status_code": response.status_code},
        )
        return _parse_sync_response(response, url)

    async def get_transaction(self, tx_hash: str) -> TxLookupResult:
        url = f"{self._base_url}/transactions/{quote(tx_hash, safe='')}"
        response = await self._transport.request("GET", url)
        return _parse_lookup_response(response, tx_hash, url)

    # -----------------------------------------------------------------
    # AccountSequenceProvider
    # -----------------------------------------------------------------

    async def get_sequence(self, account: str) -> int:
        url = f"{self._base_url}/accounts/{quote(account, safe='')}"
        response = await self._transport.request("GET", url)
        _raise_for_unavailable(response, url)
        body = response.body or {}
        if response.status_code != 200 or "sequence" not in body:
            raise GatewayProtocolError(
                f"unexpected account reply: HTTP {response.status_code}",
                error_code="BAD_ACCOUNT_REPLY",
                details={"url": url, "status_code": response.status_code},
            )
        try:
            return int(body["sequence"])
        except (TypeError, ValueError) as e:
            raise GatewayProtocolError(
                f"account sequence is not an integer: {body['sequence']!r}",
                error_code="BAD_ACCOUNT_REPLY",
                details={"url": url},
            ) from e


def create_gateway(
    *,
    base_url: str,
    timeout_s: float = 60.0,
    headers: dict[str, str] | None = None,
) -> HttpGateway:
    """Create an HttpGateway backed by httpx.

    Args:
        base_url: Gateway root URL. Required.
        timeout_s: Client-side request timeout in seconds.
        headers: Extra headers for every request (e.g. an API key).
    """
    return HttpGateway(base_url, HttpxTransport(timeout_s=timeout_s, headers=headers))


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _raise_for_unavailable(response: HttpResponse, url: str) -> None:
    """Raise for 429 and 5xx replies that are not part of an endpoint contract."""
    if response.status_code == 429:
        raise RateLimited(
            "gateway rate limit exceeded",
            retry_after=_parse_retry_after(response.headers.get("retry-after")),
            details={"url": url, "status_code": 429},
        )
    if response.status_code >= 500:
        raise GatewayUnavailable(
            f"gateway returned HTTP {response.status_code}",
            error_code="HTTP_ERROR",
            details={"url": url, "status_code": response.status_code},
        )


def _parse_retry_after(value: str | None) -> float | None:
    # Only the delay-seconds form; HTTP-date values are ignored.
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _result_codes(container: dict[str, Any]) -> tuple[str | None, tuple[str, ...]]:
    codes = container.get("result_codes")
    if not isinstance(codes, dict):
        return None, ()
    ops = codes.get("operations") or ()
    return codes.get("transaction"), tuple(str(op) for op in ops)


def _parse_ledger(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_async_response(response: HttpResponse, url: str) -> AsyncSubmitResult:
    status = _ASYNC_STATUS_BY_HTTP.get(response.status_code)
    if status is None:
        _raise_for_unavailable(response, url)
        raise GatewayProtocolError(
            f"unexpected async submission reply: HTTP {response.status_code}",
            error_code="BAD_SUBMIT_REPLY",
            details={"url": url, "status_code": response.status_code},
        )

    body = response.body or {}
    declared = body.get("tx_status")
    if declared is not None and declared != status.value:
        raise GatewayProtocolError(
            f"tx_status {declared!r} does not match HTTP {response.status_code}",
            error_code="BAD_SUBMIT_REPLY",
            details={"url": url, "status_code": response.status_code},
        )

    if status is not AsyncStatus.ERROR:
        return AsyncSubmitResult(status=status, tx_hash=body.get("hash"))

    error_result = body.get("error_result")
    if not isinstance(error_result, dict):
        error_result = {}
    operation_codes = error_result.get("operation_codes") or ()
    return AsyncSubmitResult(
        status=status,
        tx_hash=body.get("hash"),
        result_code=parse_result_code(error_result.get("result_code")),
        operation_codes=tuple(str(op) for op in operation_codes),
        diagnostic=body or None,
    )


def _parse_sync_response(response: HttpResponse, url: str) -> SyncSubmitResult:
    body = response.body or {}

    if response.status_code == 200:
        return SyncSubmitResult(
            status=SyncStatus.SUCCESS,
            tx_hash=body.get("hash"),
            ledger=_parse_ledger(body.get("ledger")),
        )

    if response.status_code == 400:
        extras = body.get("extras")
        if not isinstance(extras, dict):
            extras = {}
        tx_code, operation_codes = _result_codes(extras)
        return SyncSubmitResult(
            status=SyncStatus.REJECTED,
            tx_hash=extras.get("hash"),
            result_code=parse_result_code(tx_code),
            operation_codes=operation_codes,
            diagnostic=body or None,
        )

    if response.status_code == 504:
        return SyncSubmitResult(status=SyncStatus.TIMEOUT, diagnostic=body or None)

    _raise_for_unavailable(response, url)
    raise GatewayProtocolError(
        f"unexpected sync submission reply: HTTP {response.status_code}",
        error_code="BAD_SUBMIT_REPLY",
        details={"url": url, "status_code": response.status_code},
    )


def _parse_lookup_response(
    response: HttpResponse,
    tx_hash: str,
    url: str,
) -> TxLookupResult:
    if response.status_code == 404:
        return TxLookupResult(status=LookupStatus.NOT_FOUND, tx_hash=tx_hash)

    _raise_for_unavailable(response, url)
    if response.status_code != 200 or response.body is None:
        raise GatewayProtocolError(
            f"unexpected transaction lookup reply: HTTP {response.status_code}",
            error_code="BAD_LOOKUP_REPLY",
            details={"url": url, "status_code": response.status_code},
        )

    record = response.body
    if not isinstance(record.get("successful"), bool):
        raise GatewayProtocolError(
            "transaction record has no boolean 'successful' field",
            error_code="BAD_LOOKUP_REPLY",
            details={"url": url, "status_code": response.status_code},
        )
    ledger = _parse_ledger(record.get("ledger"))
    if record["successful"]:
        return TxLookupResult(
            status=LookupStatus.INCLUDED,
            tx_hash=tx_hash,
            ledger=ledger,
            record=record,
        )

    tx_code, operation_codes = _result_codes(record)
    return TxLookupResult(
        status=LookupStatus.FAILED,
        tx_hash=tx_hash,
        ledger=ledger,
        result_code=parse_result_code(tx_code),
        operation_codes=operation_codes,
        record=record,
    )
