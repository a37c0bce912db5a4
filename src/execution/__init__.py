"""Execution layer — request signing, provisioning, order placement, rate limiting."""

from __future__ import annotations

from src.execution.auth_flow import CredentialProvisioner, ProvisionResult, ProvisionState
from src.execution.polymarket_signer import sign_request
from src.execution.rate_limiter import RateWindowStore, SlidingWindowRateLimiter
from src.execution.trade_executor import TradeExecutor

__all__ = [
    "CredentialProvisioner",
    "ProvisionResult",
    "ProvisionState",
    "RateWindowStore",
    "SlidingWindowRateLimiter",
    "TradeExecutor",
    "sign_request",
]
