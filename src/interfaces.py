"""Protocol interfaces for relay components.

The executor, provisioning flow and gate code against these contracts so
stores and transports can be swapped (Postgres vs in-memory, live CLOB vs
test doubles).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.data.polymarket_client import UpstreamResponse
    from src.models.credentials import CredentialTuple, L1Proof


@runtime_checkable
class CredentialStore(Protocol):
    """Key-value store of credential tuples keyed by owner address."""

    async def get(self, owner_address: str) -> CredentialTuple | None: ...

    async def put(self, credentials: CredentialTuple) -> None: ...

    async def delete(self, owner_address: str) -> None: ...


@runtime_checkable
class ExchangeTransport(Protocol):
    """HTTP transport to the exchange (see PolymarketClient)."""

    async def send_l1(self, method: str, path: str, proof: L1Proof) -> UpstreamResponse: ...

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
    ) -> UpstreamResponse: ...

    async def get_access_status(self, address: str) -> UpstreamResponse: ...


@runtime_checkable
class Authorizer(Protocol):
    """Decides whether an incoming Authorization header is acceptable."""

    def is_authorized(self, authorization: str | None) -> bool: ...
