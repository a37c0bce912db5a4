"""Typed relay settings built from the TOML config."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

from src.config.loader import ConfigLoader


class RelaySettings(BaseModel):
    """Frozen view of everything the relay needs at startup."""

    model_config = ConfigDict(frozen=True)

    env: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = Field(default_factory=list)
    clob_url: str = "https://clob.polymarket.com"
    timeout_seconds: float = 10.0
    funder_retry_backoff_seconds: float = 0.35
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    sweep_interval_seconds: float = 60.0
    api_secret: str = ""
    database_url: str = ""
    db_min_pool: int = 1
    db_max_pool: int = 5

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> RelaySettings:
        """Build settings from a loaded config.

        API_SECRET_KEY, DATABASE_URL and FRONTEND_URL are honoured on top of
        the TOML values since the hosting platform injects them directly.
        """
        loader.validate_ranges()
        origins = list(loader.get("server.cors_origins", []) or [])
        frontend_url = os.environ.get("FRONTEND_URL", "")
        if frontend_url and frontend_url not in origins:
            origins.append(frontend_url)

        return cls(
            env=loader.env,
            host=loader.get("server.host", "0.0.0.0"),
            port=int(os.environ.get("PORT", loader.get("server.port", 3001))),
            cors_origins=origins,
            clob_url=loader.get("exchange.clob_url", "https://clob.polymarket.com"),
            timeout_seconds=float(loader.get("exchange.timeout_seconds", 10.0)),
            funder_retry_backoff_seconds=float(
                loader.get("trade.funder_retry_backoff_seconds", 0.35),
            ),
            rate_limit_max_requests=int(loader.get("rate_limit.max_requests", 10)),
            rate_limit_window_seconds=float(loader.get("rate_limit.window_seconds", 60)),
            sweep_interval_seconds=float(loader.get("rate_limit.sweep_interval_seconds", 60)),
            api_secret=os.environ.get("API_SECRET_KEY") or str(loader.get("auth.api_secret", "") or ""),
            database_url=os.environ.get("DATABASE_URL") or str(loader.get("database.url", "") or ""),
            db_min_pool=int(loader.get("database.min_pool", 1)),
            db_max_pool=int(loader.get("database.max_pool", 5)),
        )
