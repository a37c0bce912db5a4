"""Relay HTTP surface — FastAPI app wiring the gate, stores and executor.

Usage:
    uvicorn src.relay.app:create_app --factory --port 3001
    # or
    polymarket-relay serve
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Body, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config.loader import ConfigError
from src.config.settings import RelaySettings
from src.core.errors import CredentialsAbsent, RateLimited, RelayError
from src.core.logging import get_logger, log_trade_event, short_address
from src.data.credential_store import InMemoryCredentialStore, PostgresCredentialStore
from src.data.polymarket_client import PolymarketClient
from src.execution.auth_flow import CredentialProvisioner
from src.execution.rate_limiter import RateDecision, RateWindowStore, SlidingWindowRateLimiter
from src.execution.trade_executor import Sleep, TradeExecutor
from src.interfaces import CredentialStore, ExchangeTransport
from src.models.credentials import CredentialTuple
from src.models.order import SignedOrder
from src.relay.gate import RelayGate, SharedSecretAuthorizer
from src.relay.schemas import ProvisionRequest, TradeRequest

log = get_logger(__name__)

API_PREFIX = "/api/polymarket"


@dataclass
class RelayServices:
    """Everything a request handler needs, scoped to one app instance."""

    settings: RelaySettings
    store: CredentialStore
    transport: ExchangeTransport
    executor: TradeExecutor
    provisioner: CredentialProvisioner
    gate: RelayGate
    started_at: float


def build_services(
    settings: RelaySettings,
    *,
    store: CredentialStore | None = None,
    transport: ExchangeTransport | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> RelayServices:
    if settings.is_production and not settings.api_secret:
        msg = "API_SECRET_KEY must be set in production"
        raise ConfigError(msg)

    if store is None:
        if settings.database_url:
            store = PostgresCredentialStore(
                dsn=settings.database_url,
                min_pool=settings.db_min_pool,
                max_pool=settings.db_max_pool,
            )
        else:
            store = InMemoryCredentialStore()
    if transport is None:
        transport = PolymarketClient(
            clob_url=settings.clob_url,
            timeout_seconds=settings.timeout_seconds,
        )

    limiter = SlidingWindowRateLimiter(
        RateWindowStore(),
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        clock=clock,
    )
    return RelayServices(
        settings=settings,
        store=store,
        transport=transport,
        executor=TradeExecutor(transport, settings.funder_retry_backoff_seconds, sleep=sleep),
        provisioner=CredentialProvisioner(transport, store),
        gate=RelayGate(SharedSecretAuthorizer(settings.api_secret), limiter),
        started_at=time.monotonic(),
    )


def _services(request: Request) -> RelayServices:
    return request.app.state.services  # type: ignore[no-any-return]


def _rate_headers(decision: RateDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(round(decision.reset_after)),
    }


def _failure_status(status: int | None) -> int:
    if status is None or status < 400:
        return 502
    return status


router = APIRouter(prefix=API_PREFIX)


@router.post("/credentials")
async def store_credentials(
    request: Request,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    services = _services(request)
    services.gate.authorize(authorization)
    credentials = CredentialTuple.from_mapping(payload)
    await services.store.put(credentials)
    log_trade_event("credentials_stored", credentials.owner_address)
    return {"success": True}


@router.get("/credentials/{owner_address}")
async def get_credentials(
    request: Request,
    owner_address: str,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    services = _services(request)
    services.gate.authorize(authorization)
    credentials = await services.store.get(owner_address)
    if credentials is None:
        raise CredentialsAbsent("Credentials not found")
    return credentials.masked()


@router.delete("/credentials/{owner_address}")
async def delete_credentials(
    request: Request,
    owner_address: str,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    services = _services(request)
    services.gate.authorize(authorization)
    await services.store.delete(owner_address)
    log_trade_event("credentials_deleted", owner_address)
    return {"success": True}


@router.post("/auth/provision")
async def provision_credentials(
    request: Request,
    body: ProvisionRequest,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    services = _services(request)
    services.gate.admit(authorization, body.address)
    result = await services.provisioner.provision(body.to_proof())
    status = 200 if result.success else _failure_status(result.status)
    return JSONResponse(result.to_response(), status_code=status)


@router.post("/trade")
async def trade(
    request: Request,
    body: TradeRequest,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    services = _services(request)
    decision = services.gate.admit(authorization, body.owner_address)
    signed_order = SignedOrder(body.signed_order)

    if body.credentials:
        credentials = CredentialTuple.from_mapping(body.credentials, owner_address=body.owner_address)
        log.info("trade_using_request_credentials", owner=short_address(body.owner_address))
    else:
        stored = await services.store.get(body.owner_address)
        if stored is None:
            raise CredentialsAbsent()
        credentials = stored

    funder = body.funder_address or credentials.funder_address
    result = await services.executor.execute_trade(
        credentials,
        signed_order,
        body.owner_address,
        funder,
    )
    status = 200 if result.success else _failure_status(result.status)
    return JSONResponse(result.to_response(), status_code=status, headers=_rate_headers(decision))


@router.get("/status")
async def trading_status(
    request: Request,
    owner: str = Query(..., min_length=1),
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    services = _services(request)
    services.gate.authorize(authorization)
    credentials = await services.store.get(owner)
    if credentials is None:
        raise CredentialsAbsent("Credentials not found")
    status = await services.executor.check_trading_status(
        owner,
        credentials.api_key,
        credentials.api_secret,
        credentials.passphrase,
    )
    return status.to_response()


async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimited):
        headers = {
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.retry_after),
        }
    if exc.status_code >= 500:
        log.error("relay_request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # loc is (source, field, ...); deeper parts name union members, not fields
    fields = sorted({
        str(err["loc"][1] if len(err["loc"]) > 1 else err["loc"][0])
        for err in exc.errors()
        if err.get("loc")
    })
    return JSONResponse(
        {"error": f"Missing or invalid fields: {', '.join(fields)}"},
        status_code=400,
    )


def create_app(
    settings: RelaySettings | None = None,
    *,
    store: CredentialStore | None = None,
    transport: ExchangeTransport | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Build the relay app. Collaborators can be injected for tests."""
    if settings is None:
        from src.config.loader import ConfigLoader

        settings = RelaySettings.from_loader(ConfigLoader())

    services = build_services(settings, store=store, transport=transport, sleep=sleep, clock=clock)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if isinstance(services.store, PostgresCredentialStore):
            await services.store.open()
        sweeper = asyncio.create_task(
            services.gate.limiter.run_sweeper(settings.sweep_interval_seconds),
        )
        log.info("relay_started", env=settings.env, clob_url=settings.clob_url)
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            if isinstance(services.transport, PolymarketClient):
                await services.transport.close()
            if isinstance(services.store, PostgresCredentialStore):
                await services.store.close()
            log.info("relay_stopped")

    app = FastAPI(title="Polymarket Relay", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RelayError, _relay_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": int(time.time() * 1000),
            "uptime": round(time.monotonic() - services.started_at, 3),
        }

    app.include_router(router)
    return app
