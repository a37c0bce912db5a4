"""Relay gate — caller authorization plus per-owner rate admission.

Bearer tokens are accepted only when they match the configured shared
secret (constant-time compare). JWT-shaped tokens get no special treatment.
"""

from __future__ import annotations

import hmac
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from src.core.errors import AuthorizationError, InputError, RateLimited
from src.core.logging import get_logger

if TYPE_CHECKING:
    from src.execution.rate_limiter import RateDecision, SlidingWindowRateLimiter
    from src.interfaces import Authorizer

logger = get_logger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+", re.IGNORECASE)

T = TypeVar("T")


def extract_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    return _BEARER_RE.sub("", authorization.strip(), count=1)


class SharedSecretAuthorizer:
    """Accepts ``Authorization: Bearer <secret>`` for one shared secret.

    With no secret configured every presented token is accepted, which is
    only allowed outside production (see RelaySettings).
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret
        if not secret:
            logger.warning("relay_auth_disabled", reason="no shared secret configured")

    def is_authorized(self, authorization: str | None) -> bool:
        token = extract_token(authorization)
        if not token:
            return False
        if not self._secret:
            return True
        return hmac.compare_digest(token.encode("utf-8"), self._secret.encode("utf-8"))


class RelayGate:
    """Runs authorization and rate admission in front of relay operations."""

    def __init__(self, authorizer: Authorizer, limiter: SlidingWindowRateLimiter) -> None:
        self._authorizer = authorizer
        self._limiter = limiter

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return self._limiter

    def authorize(self, authorization: str | None) -> None:
        if not authorization:
            raise AuthorizationError("Missing authorization header")
        if not self._authorizer.is_authorized(authorization):
            logger.warning("relay_auth_failed")
            raise AuthorizationError("Invalid API key", status_code=403)

    def admit(self, authorization: str | None, owner: str | None) -> RateDecision:
        """Authorize the caller and count one request against ``owner``."""
        self.authorize(authorization)
        if not owner:
            raise InputError("Missing owner for rate limiting")
        decision = self._limiter.check(owner.lower())
        if not decision.allowed:
            raise RateLimited(
                retry_after=decision.retry_after,
                limit=decision.limit,
                window_seconds=self._limiter.window_seconds,
            )
        return decision

    async def run(
        self,
        authorization: str | None,
        owner: str | None,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Admit, then await ``operation``."""
        self.admit(authorization, owner)
        return await operation()
