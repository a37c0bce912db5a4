"""Polymarket CLOB REST transport.

Speaks the raw HTTP protocol: L1 (wallet-proof) and L2 (HMAC-signed)
headers, and a single place where response bodies are classified as parsed
JSON or raw text.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from src.core.errors import TransportFailure
from src.core.logging import get_logger, short_address
from src.execution.polymarket_signer import sign_request

if TYPE_CHECKING:
    from src.models.credentials import L1Proof

log = get_logger(__name__)

DEFAULT_CLOB_URL = "https://clob.polymarket.com"

# The CLOB sits behind a WAF that rejects obviously non-browser clients.
_BROWSER_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://polymarket.com",
    "Referer": "https://polymarket.com/",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
}


@dataclass(frozen=True)
class ParsedBody:
    value: Any


@dataclass(frozen=True)
class RawBody:
    text: str


UpstreamBody = ParsedBody | RawBody


def classify_body(text: str) -> UpstreamBody:
    """Decide once whether a response body is JSON or raw text."""
    if not text:
        return RawBody("")
    try:
        return ParsedBody(json.loads(text))
    except ValueError:
        return RawBody(text)


@dataclass(frozen=True)
class UpstreamResponse:
    """Status code plus the tagged body of one exchange response."""

    status_code: int
    body: UpstreamBody

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def field(self, *names: str) -> Any:
        """First non-empty value among ``names`` in a JSON object body."""
        if not isinstance(self.body, ParsedBody) or not isinstance(self.body.value, dict):
            return None
        for name in names:
            value = self.body.value.get(name)
            if value not in (None, ""):
                return value
        return None

    def verbatim(self) -> Any:
        """Body as received: the decoded JSON value or the raw text."""
        if isinstance(self.body, ParsedBody):
            return self.body.value
        return self.body.text

    def error_text(self) -> str:
        message = self.field("error", "errorMsg", "message")
        if message is not None:
            return str(message)
        if isinstance(self.body, ParsedBody):
            return json.dumps(self.body.value)
        return self.body.text or f"HTTP {self.status_code}"


def l1_headers(proof: L1Proof) -> dict[str, str]:
    """Headers for wallet-proof requests (credential create/derive)."""
    return {
        **_BROWSER_HEADERS,
        "POLY_ADDRESS": proof.address,
        "POLY_SIGNATURE": proof.signature,
        "POLY_TIMESTAMP": str(proof.timestamp),
        "POLY_NONCE": str(proof.nonce),
    }


def l2_headers(
    address: str,
    api_key: str,
    passphrase: str,
    timestamp: int,
    signature: str,
    *,
    has_body: bool = False,
) -> dict[str, str]:
    """Headers for HMAC-authenticated requests."""
    headers = {
        **_BROWSER_HEADERS,
        "POLY_ADDRESS": address,
        "POLY_API_KEY": api_key,
        "POLY_PASSPHRASE": passphrase,
        "POLY_TIMESTAMP": str(timestamp),
        "POLY_SIGNATURE": signature,
    }
    if has_body:
        headers["Content-Type"] = "application/json"
    return headers


class PolymarketClient:
    """Async HTTP transport for the Polymarket CLOB API.

    ``clock`` supplies epoch seconds for L2 timestamps; the same integer is
    used in the signature preimage and the POLY_TIMESTAMP header.
    """

    def __init__(
        self,
        clob_url: str = DEFAULT_CLOB_URL,
        timeout_seconds: float = 10.0,
        *,
        clock: Callable[[], float] = time.time,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._clob_url = clob_url.rstrip("/")
        self._timeout = timeout_seconds
        self._clock = clock
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._clob_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
        params: dict[str, str] | None = None,
    ) -> UpstreamResponse:
        """Send one request; network errors become TransportFailure."""
        client = await self._get_client()
        try:
            resp = await client.request(
                method,
                path,
                headers=headers,
                content=content,
                params=params,
            )
        except httpx.HTTPError as exc:
            log.error("clob_transport_failed", method=method, path=path, error=str(exc)[:200])
            raise TransportFailure(f"{method} {path} failed: {exc}") from exc

        upstream = UpstreamResponse(status_code=resp.status_code, body=classify_body(resp.text))
        log.debug("clob_response", method=method, path=path, status=resp.status_code)
        return upstream

    async def send_l1(self, method: str, path: str, proof: L1Proof) -> UpstreamResponse:
        """Send a request authenticated by the wallet proof alone."""
        log.info("clob_l1_request", method=method, path=path, address=short_address(proof.address))
        return await self.request(method, path, headers=l1_headers(proof))

    async def send_l2(
        self,
        method: str,
        path: str,
        *,
        address: str,
        api_key: str,
        secret: str,
        passphrase: str,
        body: bytes = b"",
    ) -> UpstreamResponse:
        """Sign with a fresh timestamp and send an L2 request.

        ``body`` is signed and transmitted as the same byte sequence.
        """
        timestamp = int(self._clock())
        signature = sign_request(secret, method, path, timestamp, body)
        headers = l2_headers(
            address,
            api_key,
            passphrase,
            timestamp,
            signature,
            has_body=bool(body),
        )
        return await self.request(method, path, headers=headers, content=body or None)

    async def get_access_status(self, address: str) -> UpstreamResponse:
        """Unauthenticated diagnostic lookup used after a failed derive."""
        return await self.request(
            "GET",
            "/auth/access-status",
            headers=dict(_BROWSER_HEADERS),
            params={"address": address},
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
