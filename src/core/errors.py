"""Relay error taxonomy.

Core operations resolve to structured results; these exceptions cross the
seams where a result cannot be produced (validation, transport, admission)
and are mapped to HTTP responses by the relay app.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for all relay errors."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class InputError(RelayError):
    """Missing or malformed required fields in a request."""

    status_code = 400


class CredentialsAbsent(RelayError):
    """No stored or supplied credentials for the requested owner."""

    status_code = 404

    def __init__(
        self,
        message: str = "Credentials not found. Please connect your wallet first.",
    ) -> None:
        super().__init__(message)


class UpstreamRejection(RelayError):
    """The exchange answered with a non-2xx status. ``body`` is kept verbatim."""

    def __init__(
        self,
        status_code: int,
        body: Any,
        where: str = "",
        message: str | None = None,
    ) -> None:
        super().__init__(message or f"Upstream rejected request ({status_code})", status_code=status_code)
        self.body = body
        self.where = where

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "status": self.status_code, "body": self.body}
        if self.where:
            payload["where"] = self.where
        return payload


class AddressBlocked(UpstreamRejection):
    """Upstream 403 during order placement."""

    def __init__(self, body: Any, where: str = "order", message: str | None = None) -> None:
        super().__init__(403, body, where, message)


class MalformedUpstreamResponse(RelayError):
    """2xx status but required fields are missing from the body."""

    status_code = 502

    def __init__(self, message: str, *, body: Any = None) -> None:
        super().__init__(message)
        self.body = body


class TransportFailure(RelayError):
    """Network-level failure talking to the exchange."""

    status_code = 500


class AuthorizationError(RelayError):
    """Caller failed the relay admission check."""

    status_code = 401


class RateLimited(RelayError):
    """Caller exceeded the per-owner request window."""

    status_code = 429

    def __init__(self, retry_after: int, limit: int, window_seconds: float) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after = retry_after
        self.limit = limit
        self.window_seconds = window_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "retryAfter": self.retry_after,
            "limit": self.limit,
            "window": self.window_seconds,
        }
