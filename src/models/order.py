"""Signed order payload and trade outcome models."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from src.core.errors import InputError


class AttemptIdentity(str, Enum):
    OWNER = "owner"
    FUNDER = "funder"


class SignedOrder:
    """An order already signed by the trader's wallet.

    The relay never inspects or rewrites the order: it is serialized once to
    compact JSON and those exact bytes are both signed and sent. A caller
    that already holds the serialized form can pass ``str``/``bytes`` and the
    bytes are used verbatim.
    """

    __slots__ = ("_body", "_payload")

    def __init__(self, payload: dict[str, Any] | str | bytes) -> None:
        if isinstance(payload, (str, bytes)):
            body = payload.encode("utf-8") if isinstance(payload, str) else payload
            try:
                parsed = json.loads(body)
            except ValueError as exc:
                msg = "signedOrder is not valid JSON"
                raise InputError(msg) from exc
        elif isinstance(payload, dict):
            parsed = payload
            body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        else:
            msg = f"signedOrder must be an object, got {type(payload).__name__}"
            raise InputError(msg)

        if not isinstance(parsed, dict) or not parsed:
            msg = "signedOrder must be a non-empty JSON object"
            raise InputError(msg)

        self._payload: dict[str, Any] = parsed
        self._body: bytes = body

    @property
    def body(self) -> bytes:
        """The exact bytes signed and transmitted."""
        return self._body

    def summary(self) -> dict[str, Any]:
        """Non-sensitive fields for log lines."""
        order = self._payload.get("order", self._payload)
        if not isinstance(order, dict):
            return {}
        side = order.get("side")
        if side in (0, "0"):
            side = "BUY"
        elif side in (1, "1"):
            side = "SELL"
        token_id = str(order.get("tokenId", ""))
        return {
            "token_id": token_id[:16],
            "side": side,
            "maker_amount": order.get("makerAmount"),
            "order_type": self._payload.get("orderType"),
        }

    def __repr__(self) -> str:
        return f"SignedOrder({len(self._body)} bytes)"


class TradeResult(BaseModel):
    """Outcome of an order placement, including which identity produced it."""

    model_config = ConfigDict(frozen=True)

    success: bool
    attempted_with: AttemptIdentity
    order_id: str | None = None
    error: str | None = None
    status: int | None = None
    attempts: int = 1

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "attemptedWith": self.attempted_with.value,
        }
        if self.success:
            payload["orderId"] = self.order_id
        else:
            payload["error"] = self.error
        return payload


class TradingStatus(BaseModel):
    """Ban-status check result; never raised, always returned."""

    model_config = ConfigDict(frozen=True)

    trading_enabled: bool
    closed_only: bool | None = None
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"tradingEnabled": self.trading_enabled}
        if self.closed_only is not None:
            payload["closedOnly"] = self.closed_only
        if self.error is not None:
            payload["error"] = self.error
        return payload
