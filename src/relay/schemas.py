"""Request bodies accepted by the relay HTTP surface."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field

from src.models.credentials import L1Proof


def _not_blank(value: str) -> str:
    if not value.strip():
        msg = "must not be blank"
        raise ValueError(msg)
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class TradeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_address: NonBlankStr = Field(
        min_length=1,
        validation_alias=AliasChoices("ownerAddress", "walletAddress", "owner_address"),
    )
    # A string is taken as the already-serialized order and sent verbatim.
    signed_order: dict[str, Any] | str = Field(validation_alias=AliasChoices("signedOrder", "signed_order"))
    funder_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("funderAddress", "funder_address"),
    )
    credentials: dict[str, Any] | None = None


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: NonBlankStr = Field(min_length=1)
    timestamp: int = Field(ge=0)
    nonce: int = Field(default=0, ge=0)
    signature: NonBlankStr = Field(min_length=1)
    funder_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("funderAddress", "funder_address"),
    )

    def to_proof(self) -> L1Proof:
        return L1Proof(
            address=self.address,
            timestamp=self.timestamp,
            nonce=self.nonce,
            signature=self.signature,
            funder_address=self.funder_address,
        )
