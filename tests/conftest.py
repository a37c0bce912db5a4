"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path  # noqa: TCH003

import pytest

from src.config.loader import ConfigLoader
from src.core.errors import TransportFailure
from src.data.credential_store import InMemoryCredentialStore
from src.models.credentials import CredentialTuple, L1Proof
from src.models.order import SignedOrder
from tests.fakes import (
    API_KEY,
    API_SECRET,
    FUNDER,
    OWNER,
    PASSPHRASE,
    FakeClock,
    FakeTransport,
    RecordingSleep,
)


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def credentials() -> CredentialTuple:
    return CredentialTuple.create(OWNER, API_KEY, API_SECRET, PASSPHRASE, FUNDER)


@pytest.fixture()
def signed_order() -> SignedOrder:
    return SignedOrder({
        "order": {
            "salt": 123456789,
            "maker": FUNDER,
            "signer": OWNER,
            "taker": "0x0000000000000000000000000000000000000000",
            "tokenId": "71321045679252212594626385532706912750332728571942532289631379312455583992563",
            "makerAmount": "5000000",
            "takerAmount": "10000000",
            "expiration": "0",
            "nonce": "0",
            "feeRateBps": "0",
            "side": 0,
            "signatureType": 2,
            "signature": "0xdeadbeef",
        },
        "owner": API_KEY,
        "orderType": "GTC",
    })


@pytest.fixture()
def l1_proof() -> L1Proof:
    return L1Proof(address=OWNER, timestamp=1_700_000_000, nonce=0, signature="0xwalletsig")


@pytest.fixture()
def transport_failure() -> TransportFailure:
    return TransportFailure("POST /order failed: connection reset")


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Create a temp config directory with default.toml."""
    config = tmp_path / "config"
    config.mkdir()

    default_toml = config / "default.toml"
    default_toml.write_text(
        """\
[server]
host = "127.0.0.1"
port = 3001
cors_origins = ["http://localhost:8080"]

[exchange]
clob_url = "https://clob.polymarket.com"
timeout_seconds = 10.0

[trade]
funder_retry_backoff_seconds = 0.35

[rate_limit]
max_requests = 10
window_seconds = 60
sweep_interval_seconds = 60

[auth]
api_secret = "test-relay-secret"

[database]
url = ""
min_pool = 1
max_pool = 5
"""
    )
    return config


@pytest.fixture()
def config_loader(config_dir: Path) -> ConfigLoader:
    """ConfigLoader with test config."""
    loader = ConfigLoader(config_dir=config_dir, env="test")
    loader.load()
    return loader
