"""Credential models: L1 proof and the L2 credential tuple."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.core.errors import InputError
from src.core.logging import mask_secret

_REQUIRED_SECRET_FIELDS = ("api_key", "api_secret", "passphrase")

# Accepted spellings for each field, covering the exchange's camelCase
# responses and the relay's stored snake_case rows.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "owner_address": ("owner_address", "ownerAddress", "wallet_address", "walletAddress", "address"),
    "api_key": ("api_key", "apiKey", "key"),
    "api_secret": ("api_secret", "apiSecret", "secret"),
    "passphrase": ("passphrase",),
    "funder_address": ("funder_address", "funderAddress"),
}


def normalize_address(address: str) -> str:
    """Lowercase and strip an address; the store keys on this form."""
    return address.strip().lower()


def _pick(data: Mapping[str, Any], field: str) -> Any:
    for alias in _FIELD_ALIASES[field]:
        value = data.get(alias)
        if value not in (None, ""):
            return value
    return None


class CredentialTuple(BaseModel):
    """L2 exchange credentials for one owner address.

    Always build through ``from_mapping`` or ``create``: both refuse partial
    tuples so api_key/api_secret/passphrase exist together or not at all.
    """

    model_config = ConfigDict(frozen=True)

    owner_address: str
    api_key: str = Field(min_length=1)
    api_secret: str = Field(min_length=1)
    passphrase: str = Field(min_length=1)
    funder_address: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @field_validator("owner_address")
    @classmethod
    def _normalize_owner(cls, value: str) -> str:
        value = normalize_address(value)
        if not value:
            msg = "owner_address must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("funder_address")
    @classmethod
    def _normalize_funder(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = normalize_address(value)
        return value or None

    @classmethod
    def create(
        cls,
        owner_address: str | None,
        api_key: str | None,
        api_secret: str | None,
        passphrase: str | None,
        funder_address: str | None = None,
    ) -> CredentialTuple:
        return cls.from_mapping({
            "owner_address": owner_address,
            "api_key": api_key,
            "api_secret": api_secret,
            "passphrase": passphrase,
            "funder_address": funder_address,
        })

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        owner_address: str | None = None,
    ) -> CredentialTuple:
        """Validate a loosely-shaped mapping into a complete tuple.

        Raises:
            InputError: naming every missing field.
        """
        owner = owner_address or _pick(data, "owner_address")
        values = {field: _pick(data, field) for field in _REQUIRED_SECRET_FIELDS}
        missing = [field for field, value in values.items() if not value]
        if not owner:
            missing.insert(0, "owner_address")
        if missing:
            msg = f"Incomplete credentials. Missing: {', '.join(missing)}"
            raise InputError(msg)

        funder = _pick(data, "funder_address")
        non_strings = [field for field, value in values.items() if not isinstance(value, str)]
        if not isinstance(owner, str):
            non_strings.insert(0, "owner_address")
        if funder is not None and not isinstance(funder, str):
            non_strings.append("funder_address")
        if non_strings:
            msg = f"Credential fields must be strings: {', '.join(non_strings)}"
            raise InputError(msg)

        if not normalize_address(owner):
            msg = "Incomplete credentials. Missing: owner_address"
            raise InputError(msg)

        try:
            return cls(
                owner_address=owner,
                api_key=values["api_key"],
                api_secret=values["api_secret"],
                passphrase=values["passphrase"],
                funder_address=funder,
            )
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            msg = f"Invalid credential fields: {', '.join(fields)}"
            raise InputError(msg) from exc

    def masked(self) -> dict[str, Any]:
        """Public view: addresses plus key/passphrase suffixes only."""
        return {
            "ownerAddress": self.owner_address,
            "funderAddress": self.funder_address,
            "apiKey": mask_secret(self.api_key),
            "passphrase": mask_secret(self.passphrase),
            "hasCredentials": True,
            "updatedAt": self.updated_at.isoformat(),
        }


class L1Proof(BaseModel):
    """Wallet-signed proof of address ownership used to bootstrap L2 keys."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(min_length=1)
    timestamp: int = Field(ge=0)
    nonce: int = Field(default=0, ge=0)
    signature: str = Field(min_length=1)
    funder_address: str | None = None

    @field_validator("address")
    @classmethod
    def _strip_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "address must not be blank"
            raise ValueError(msg)
        return value
