"""Credential stores: in-memory (dev/tests) and Postgres (deployment).

Both implement the CredentialStore protocol from src.interfaces and key
rows on the lowercased owner address. Writes are whole-row upserts.
"""

from __future__ import annotations

import os
from typing import Any

import psycopg
import psycopg.rows
from psycopg_pool import AsyncConnectionPool

from src.core.logging import get_logger, short_address
from src.models.credentials import CredentialTuple, normalize_address

log = get_logger(__name__)

CREATE_CREDENTIALS_TABLE = """
CREATE TABLE IF NOT EXISTS user_credentials (
    owner_address   TEXT        PRIMARY KEY,
    api_key         TEXT        NOT NULL,
    secret          TEXT        NOT NULL,
    passphrase      TEXT        NOT NULL,
    funder_address  TEXT,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

CREATE_FUNDER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_user_credentials_funder
ON user_credentials (funder_address);
"""

UPSERT_CREDENTIALS = """
INSERT INTO user_credentials
    (owner_address, api_key, secret, passphrase, funder_address, updated_at)
VALUES (%s, %s, %s, %s, %s, %s)
ON CONFLICT (owner_address) DO UPDATE SET
    api_key = EXCLUDED.api_key,
    secret = EXCLUDED.secret,
    passphrase = EXCLUDED.passphrase,
    funder_address = EXCLUDED.funder_address,
    updated_at = EXCLUDED.updated_at;
"""

SELECT_CREDENTIALS = """
SELECT owner_address, api_key, secret, passphrase, funder_address, updated_at
FROM user_credentials
WHERE owner_address = %s;
"""

DELETE_CREDENTIALS = """
DELETE FROM user_credentials WHERE owner_address = %s;
"""


class InMemoryCredentialStore:
    """Process-local store. Each put replaces the whole tuple."""

    def __init__(self) -> None:
        self._rows: dict[str, CredentialTuple] = {}

    async def get(self, owner_address: str) -> CredentialTuple | None:
        return self._rows.get(normalize_address(owner_address))

    async def put(self, credentials: CredentialTuple) -> None:
        self._rows[credentials.owner_address] = credentials
        log.info("credential_store.put", owner=short_address(credentials.owner_address))

    async def delete(self, owner_address: str) -> None:
        self._rows.pop(normalize_address(owner_address), None)
        log.info("credential_store.delete", owner=short_address(owner_address))

    def __len__(self) -> int:
        return len(self._rows)


class PostgresCredentialStore:
    """Async Postgres credential store.

    Reads connection URL from DATABASE_URL env var.
    """

    def __init__(self, dsn: str | None = None, min_pool: int = 1, max_pool: int = 5) -> None:
        self._dsn = dsn or os.environ.get("DATABASE_URL", "")
        self._min_pool = min_pool
        self._max_pool = max_pool
        self._pool: AsyncConnectionPool[psycopg.AsyncConnection[Any]] | None = None

    async def open(self) -> None:
        """Open connection pool and ensure the schema exists."""
        self._pool = AsyncConnectionPool(
            conninfo=self._dsn,
            min_size=self._min_pool,
            max_size=self._max_pool,
            open=False,
        )
        await self._pool.open()
        await self.create_tables()
        log.info("credential_store.pool_opened")

    async def close(self) -> None:
        """Close connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            log.info("credential_store.pool_closed")

    async def create_tables(self) -> None:
        assert self._pool is not None
        async with self._pool.connection() as conn:
            await conn.execute(CREATE_CREDENTIALS_TABLE)
            await conn.execute(CREATE_FUNDER_INDEX)
            await conn.commit()

    async def get(self, owner_address: str) -> CredentialTuple | None:
        assert self._pool is not None
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=psycopg.rows.dict_row) as cur:
                await cur.execute(SELECT_CREDENTIALS, (normalize_address(owner_address),))
                row = await cur.fetchone()
        if row is None:
            return None
        return _row_to_credentials(row)

    async def put(self, credentials: CredentialTuple) -> None:
        assert self._pool is not None
        async with self._pool.connection() as conn:
            await conn.execute(
                UPSERT_CREDENTIALS,
                (
                    credentials.owner_address,
                    credentials.api_key,
                    credentials.api_secret,
                    credentials.passphrase,
                    credentials.funder_address,
                    credentials.updated_at,
                ),
            )
            await conn.commit()
        log.info("credential_store.put", owner=short_address(credentials.owner_address))

    async def delete(self, owner_address: str) -> None:
        assert self._pool is not None
        async with self._pool.connection() as conn:
            await conn.execute(DELETE_CREDENTIALS, (normalize_address(owner_address),))
            await conn.commit()
        log.info("credential_store.delete", owner=short_address(owner_address))


def _row_to_credentials(row: dict[str, Any]) -> CredentialTuple:
    return CredentialTuple(
        owner_address=row["owner_address"],
        api_key=row["api_key"],
        api_secret=row["secret"],
        passphrase=row["passphrase"],
        funder_address=row.get("funder_address"),
        updated_at=row["updated_at"],
    )
