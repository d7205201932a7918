"""
Transport protocol for gateway HTTP calls.

Defines the seam where concrete HTTP implementations plug in. HttpGateway
depends on this protocol, not on httpx directly, so the transport can be
swapped for a fake without editing parsing logic.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

Status codes are returned, not raised: a 400 or 504 from the gateway is
part of the submission contract. Only failures where no usable HTTP
reply exists raise, as GatewayUnavailable.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from ledger_submit.errors import GatewayUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """A parsed HTTP reply.

    Attributes:
        status_code: HTTP status.
        body: Parsed JSON body, or None if the body was empty or not JSON.
        headers: Response headers, lower-cased keys.
    """

    status_code: int
    body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class HttpTransport(Protocol):
    """Async transport for gateway requests."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        form: dict[str, str] | None = None,
    ) -> HttpResponse:
        """Send a request and return the reply.

        Args:
            method: "GET" or "POST".
            url: Absolute URL.
            form: Form fields for POST bodies.

        Raises:
            GatewayUnavailable: On connection refused, client-side timeout,
                TLS error and similar transport-level failures.
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Args:
        timeout_s: Client-side request timeout in seconds. Should exceed
            the gateway's own synchronous submission timeout so that the
            gateway's 504 arrives first.
        headers: Extra headers for every request.
    """

    def __init__(
        self,
        timeout_s: float = 60.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._headers = headers or {}

    async def request(
        self,
        method: str,
        url: str,
        *,
        form: dict[str, str] | None = None,
    ) -> HttpResponse:
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.request(
                    method,
                    url,
                    data=form,
                    headers={"Accept": "application/json", **self._headers},
                )
        except httpx.TimeoutException as e:
            raise GatewayUnavailable(
                f"HTTP request timed out after {self._timeout_s}s",
                error_code="TIMEOUT",
                details={"url": url, "timeout_s": self._timeout_s},
            ) from e
        except httpx.ConnectError as e:
            raise GatewayUnavailable(
                f"Failed to connect to {url}",
                error_code="CONNECTION_FAILED",
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise GatewayUnavailable(
                f"HTTP error: {e}",
                error_code="HTTP_ERROR",
                details={"url": url, "error": str(e)},
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            body=_parse_body(response),
            headers={k.lower(): v for k, v in response.headers.items()},
        )


def _parse_body(response: httpx.Response) -> dict[str, Any] | None:
    if not response.content:
        return None
    try:
        body = response.json()
    except json.JSONDecodeError:
        logger.debug(
            "transport.non_json_body",
            extra={"status_code": response.status_code, "preview": response.text[:200]},
        )
        return None
    return body if isinstance(body, dict) else None
