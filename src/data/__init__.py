"""Data layer — exchange transport and credential storage."""

from __future__ import annotations

from src.data.credential_store import InMemoryCredentialStore, PostgresCredentialStore
from src.data.polymarket_client import PolymarketClient, UpstreamResponse

__all__ = [
    "InMemoryCredentialStore",
    "PolymarketClient",
    "PostgresCredentialStore",
    "UpstreamResponse",
]
