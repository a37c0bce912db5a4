"""Trade executor — signed order placement with owner→funder fallback.

The CLOB blocks some owner/proxy address pairs independently. When the
owner identity gets a 403 and a distinct funder address is known, the same
signed order is retried exactly once under the funder identity.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.core.errors import (
    AddressBlocked,
    MalformedUpstreamResponse,
    RelayError,
    TransportFailure,
    UpstreamRejection,
)
from src.core.logging import get_logger, log_trade_event, mask_secret, short_address
from src.models.order import AttemptIdentity, SignedOrder, TradeResult, TradingStatus

if TYPE_CHECKING:
    from src.data.polymarket_client import UpstreamResponse
    from src.interfaces import ExchangeTransport
    from src.models.credentials import CredentialTuple

logger = get_logger(__name__)

ORDER_PATH = "/order"
BAN_STATUS_PATH = "/auth/ban-status/closed-only"
DEFAULT_FUNDER_BACKOFF_SECONDS = 0.35
_ORDER_ID_FIELDS = ("orderID", "orderId", "id")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class _Attempt:
    identity: AttemptIdentity
    order_id: str | None = None
    status: int | None = None
    failure: RelayError | None = None


def read_order_id(response: UpstreamResponse) -> str:
    """Return the order id from a placement response.

    Raises:
        AddressBlocked: upstream 403.
        UpstreamRejection: any other non-2xx status.
        MalformedUpstreamResponse: 2xx without an order id.
    """
    if response.status_code == 403:
        raise AddressBlocked(response.verbatim(), message=response.error_text())
    if not response.ok:
        raise UpstreamRejection(
            response.status_code,
            response.verbatim(),
            where="order",
            message=response.error_text(),
        )
    order_id = response.field(*_ORDER_ID_FIELDS)
    if not order_id:
        reason = response.field("errorMsg", "error")
        raise MalformedUpstreamResponse(
            str(reason) if reason else "Malformed upstream response: missing order id",
            body=response.verbatim(),
        )
    return str(order_id)


def is_distinct_funder(owner_address: str, funder_address: str | None) -> bool:
    if not funder_address:
        return False
    return funder_address.lower() != owner_address.lower()


class TradeExecutor:
    """Places signed orders and reports which identity produced the outcome.

    ``sleep`` is the suspension used for the backoff before the funder
    retry; tests inject a recorder instead of waiting on the wall clock.
    """

    def __init__(
        self,
        transport: ExchangeTransport,
        backoff_seconds: float = DEFAULT_FUNDER_BACKOFF_SECONDS,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def execute_trade(
        self,
        credentials: CredentialTuple,
        signed_order: SignedOrder,
        owner_address: str,
        funder_address: str | None = None,
    ) -> TradeResult:
        """Place ``signed_order``, retrying once with the funder on a 403."""
        log_trade_event(
            "trade_submit",
            owner_address,
            funder=short_address(funder_address),
            api_key=mask_secret(credentials.api_key),
            **signed_order.summary(),
        )

        attempt = await self._attempt(AttemptIdentity.OWNER, owner_address, credentials, signed_order)
        attempts = 1

        blocked = isinstance(attempt.failure, AddressBlocked)
        if blocked and funder_address and is_distinct_funder(owner_address, funder_address):
            logger.warning(
                "owner_address_blocked_retrying_with_funder",
                owner=short_address(owner_address),
                funder=short_address(funder_address),
                backoff=self._backoff_seconds,
            )
            log_trade_event("trade_retry_funder", owner_address, funder=short_address(funder_address))
            await self._sleep(self._backoff_seconds)
            attempt = await self._attempt(AttemptIdentity.FUNDER, funder_address, credentials, signed_order)
            attempts = 2

        result = self._to_result(attempt, attempts)
        if result.success:
            log_trade_event(
                "trade_placed",
                owner_address,
                order_id=result.order_id,
                attempted_with=result.attempted_with.value,
            )
        else:
            log_trade_event(
                "trade_failed",
                owner_address,
                status=result.status,
                error=(result.error or "")[:200],
                attempted_with=result.attempted_with.value,
            )
        return result

    async def _attempt(
        self,
        identity: AttemptIdentity,
        address: str,
        credentials: CredentialTuple,
        signed_order: SignedOrder,
    ) -> _Attempt:
        logger.info("trade_attempt", identity=identity.value, address=short_address(address))
        try:
            response = await self._transport.send_l2(
                "POST",
                ORDER_PATH,
                address=address,
                api_key=credentials.api_key,
                secret=credentials.api_secret,
                passphrase=credentials.passphrase,
                body=signed_order.body,
            )
        except TransportFailure as exc:
            return _Attempt(identity=identity, failure=exc)

        logger.info("trade_attempt_response", identity=identity.value, status=response.status_code)
        try:
            return _Attempt(
                identity=identity,
                order_id=read_order_id(response),
                status=response.status_code,
            )
        except RelayError as exc:
            if isinstance(exc, MalformedUpstreamResponse):
                logger.error(
                    "order_response_missing_id",
                    status=response.status_code,
                    response=str(response.verbatim())[:200],
                )
            return _Attempt(identity=identity, failure=exc)

    @staticmethod
    def _to_result(attempt: _Attempt, attempts: int) -> TradeResult:
        if attempt.failure is not None:
            return TradeResult(
                success=False,
                attempted_with=attempt.identity,
                error=attempt.failure.message,
                status=attempt.failure.status_code,
                attempts=attempts,
            )
        return TradeResult(
            success=True,
            attempted_with=attempt.identity,
            order_id=attempt.order_id,
            status=attempt.status,
            attempts=attempts,
        )

    async def check_trading_status(
        self,
        address: str,
        api_key: str,
        secret: str,
        passphrase: str,
    ) -> TradingStatus:
        """Ask the ban-status endpoint whether ``address`` may open positions."""
        try:
            response = await self._transport.send_l2(
                "GET",
                BAN_STATUS_PATH,
                address=address,
                api_key=api_key,
                secret=secret,
                passphrase=passphrase,
            )
        except TransportFailure as exc:
            return TradingStatus(trading_enabled=False, error=exc.message)

        if not response.ok:
            return TradingStatus(
                trading_enabled=False,
                error=f"Status check failed: {response.status_code}",
            )

        closed_only = response.field("closedOnly")
        if closed_only is None and not isinstance(response.verbatim(), dict):
            return TradingStatus(trading_enabled=False, error="Malformed ban-status response")

        closed = bool(closed_only)
        return TradingStatus(trading_enabled=not closed, closed_only=closed)
