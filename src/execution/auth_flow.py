"""L1 → L2 credential provisioning.

A wallet-signed proof (L1) is exchanged for API credentials (L2): create
first, derive once if create is rejected, then verify the new credentials
with a signed request before storing them.

States:
    CREATING  — POST /auth/api-key with the L1 proof
    DERIVING  — one GET /auth/derive-api-key after a rejected create
    DONE      — credentials obtained, not yet checked
    VERIFYING — signed GET /auth/api-keys with the new credentials
    STORED    — verified and upserted into the credential store
    FAILED    — terminal; ``where`` names the failing step
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import (
    InputError,
    MalformedUpstreamResponse,
    RelayError,
    TransportFailure,
    UpstreamRejection,
)
from src.core.logging import get_logger, log_trade_event, mask_secret, short_address
from src.models.credentials import CredentialTuple

if TYPE_CHECKING:
    from src.data.polymarket_client import UpstreamResponse
    from src.interfaces import CredentialStore, ExchangeTransport
    from src.models.credentials import L1Proof

logger = get_logger(__name__)

CREATE_API_KEY_PATH = "/auth/api-key"
DERIVE_API_KEY_PATH = "/auth/derive-api-key"
VERIFY_API_KEYS_PATH = "/auth/api-keys"
_SUFFIX_LEN = 4


class ProvisionState(str, Enum):
    CREATING = "CREATING"
    DERIVING = "DERIVING"
    DONE = "DONE"
    VERIFYING = "VERIFYING"
    STORED = "STORED"
    FAILED = "FAILED"


class ProvisionResult(BaseModel):
    """Outcome of one provisioning attempt. Never carries full secrets outward."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    state: ProvisionState
    where: str | None = None
    status: int | None = None
    body: Any = None
    access_status: Any = None
    api_key_suffix: str | None = None
    passphrase_suffix: str | None = None
    credentials: CredentialTuple | None = Field(default=None, exclude=True, repr=False)

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "state": self.state.value}
        if self.api_key_suffix is not None:
            payload["apiKeySuffix"] = self.api_key_suffix
            payload["passphraseSuffix"] = self.passphrase_suffix
        if not self.success:
            payload["where"] = self.where
            payload["status"] = self.status
            payload["body"] = self.body
            if self.access_status is not None:
                payload["accessStatus"] = self.access_status
        return payload


def _suffix(value: str) -> str:
    return value[-_SUFFIX_LEN:]


class CredentialProvisioner:
    """Runs the create → derive → verify → store sequence for one proof."""

    def __init__(self, transport: ExchangeTransport, store: CredentialStore) -> None:
        self._transport = transport
        self._store = store

    async def provision(self, proof: L1Proof) -> ProvisionResult:
        address = proof.address
        logger.info("provision_start", address=short_address(address), state=ProvisionState.CREATING.value)

        try:
            credentials = await self._obtain("POST", CREATE_API_KEY_PATH, proof)
        except RelayError as create_exc:
            logger.warning(
                "provision_create_rejected",
                address=short_address(address),
                status=create_exc.status_code,
                error=create_exc.message[:200],
                state=ProvisionState.DERIVING.value,
            )
            try:
                credentials = await self._obtain("GET", DERIVE_API_KEY_PATH, proof)
            except RelayError as derive_exc:
                return await self._derive_failed(proof, derive_exc)

        logger.info(
            "provision_credentials_obtained",
            address=short_address(address),
            api_key=mask_secret(credentials.api_key),
            state=ProvisionState.VERIFYING.value,
        )

        try:
            await self._verify(credentials, proof.address)
        except RelayError as verify_exc:
            logger.error(
                "provision_failed",
                where="verify",
                address=short_address(credentials.owner_address),
                status=verify_exc.status_code,
                api_key=mask_secret(credentials.api_key),
                passphrase=mask_secret(credentials.passphrase),
            )
            return ProvisionResult(
                success=False,
                state=ProvisionState.FAILED,
                where="verify",
                status=verify_exc.status_code,
                body=_failure_body(verify_exc),
                api_key_suffix=_suffix(credentials.api_key),
                passphrase_suffix=_suffix(credentials.passphrase),
            )

        await self._store.put(credentials)
        log_trade_event(
            "credentials_stored",
            credentials.owner_address,
            api_key=mask_secret(credentials.api_key),
        )
        return ProvisionResult(
            success=True,
            state=ProvisionState.STORED,
            status=200,
            api_key_suffix=_suffix(credentials.api_key),
            passphrase_suffix=_suffix(credentials.passphrase),
            credentials=credentials,
        )

    async def _obtain(self, method: str, path: str, proof: L1Proof) -> CredentialTuple:
        """Send one L1 request and read a complete credential tuple from it.

        Raises:
            TransportFailure: the exchange could not be reached.
            UpstreamRejection: non-2xx status.
            MalformedUpstreamResponse: 2xx without apiKey/secret/passphrase.
        """
        response = await self._transport.send_l1(method, path, proof)
        return read_credentials(response, proof)

    async def _verify(self, credentials: CredentialTuple, address: str) -> None:
        response = await self._transport.send_l2(
            "GET",
            VERIFY_API_KEYS_PATH,
            address=address,
            api_key=credentials.api_key,
            secret=credentials.api_secret,
            passphrase=credentials.passphrase,
        )
        if not response.ok:
            raise UpstreamRejection(response.status_code, response.verbatim(), where="verify")

    async def _derive_failed(self, proof: L1Proof, exc: RelayError) -> ProvisionResult:
        access_status: Any
        try:
            access = await self._transport.get_access_status(proof.address)
            access_status = {"status": access.status_code, "body": access.verbatim()}
        except TransportFailure as access_exc:
            access_status = {"error": access_exc.message}

        logger.error(
            "provision_failed",
            where="derive",
            address=short_address(proof.address),
            status=exc.status_code,
            access_status=str(access_status)[:200],
        )
        return ProvisionResult(
            success=False,
            state=ProvisionState.FAILED,
            where="derive",
            status=exc.status_code,
            body=_failure_body(exc),
            access_status=access_status,
        )


def read_credentials(response: UpstreamResponse, proof: L1Proof) -> CredentialTuple:
    """Build the credential tuple issued in a create/derive response."""
    if not response.ok:
        raise UpstreamRejection(response.status_code, response.verbatim())
    body = response.verbatim()
    if not isinstance(body, dict):
        raise MalformedUpstreamResponse("Credential response is not a JSON object", body=body)
    try:
        return CredentialTuple.from_mapping(
            {**body, "funder_address": proof.funder_address},
            owner_address=proof.address,
        )
    except InputError as exc:
        logger.error("provision_malformed_credentials", error=exc.message)
        raise MalformedUpstreamResponse(exc.message) from exc


def _failure_body(exc: RelayError) -> Any:
    if isinstance(exc, (UpstreamRejection, MalformedUpstreamResponse)) and exc.body is not None:
        return exc.body
    return exc.message
