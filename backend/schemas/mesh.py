"""Pydantic schemas for the Mesh wire formats.

Covers the outbound link-token request, the holdings and managed-address
responses, and the payloads the Link widget reports back through its
callbacks. Everything is camelCase on the wire; Python code uses
snake_case attribute names.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MeshModel(BaseModel):
    """Base for wire models: camelCase aliases, unknown fields kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ------------------------------------------------------------------
# Link token
# ------------------------------------------------------------------


class VerifyWalletOptions(MeshModel):
    network_id: str
    verification_methods: list[str] = Field(default_factory=lambda: ["signedMessage"])
    addresses: Optional[list[str]] = None


class TransferToAddress(MeshModel):
    network_id: str
    symbol: str
    address: str
    amount: float


class TransferOptions(MeshModel):
    to_addresses: list[TransferToAddress]
    is_inclusive_fee_enabled: bool = False


class LinkTokenRequest(MeshModel):
    """Body of ``POST /linktoken``."""

    user_id: str
    integration_id: str
    restrict_multiple_accounts: bool = False
    disable_api_key_generation: bool = False
    is_inclusive_fee_enabled: Optional[bool] = True
    verify_wallet_options: Optional[VerifyWalletOptions] = None
    transfer_options: Optional[TransferOptions] = None


class LinkTokenResponse(MeshModel):
    link_token: Optional[str] = None
    expiration: Optional[str] = None
    user_id: Optional[str] = None
    integration_id: Optional[str] = None
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    content: Optional[dict[str, Any]] = None

    def resolved_link_token(self) -> Optional[str]:
        """Top-level ``linkToken``, else ``content.linkToken``."""
        if self.link_token:
            return self.link_token
        if isinstance(self.content, dict):
            nested = self.content.get("linkToken")
            if isinstance(nested, str) and nested:
                return nested
        return None


# ------------------------------------------------------------------
# Holdings
# ------------------------------------------------------------------


class HoldingDistribution(MeshModel):
    caip_network_id: Optional[str] = None
    address: Optional[str] = None
    amount: Optional[float] = None


class HoldingPosition(MeshModel):
    """A single balance line. Extra upstream fields pass through."""

    name: Optional[str] = None
    symbol: Optional[str] = None
    amount: Optional[float] = None
    fiat_amount: Optional[float] = None
    fiat_currency: Optional[str] = None
    distribution: Optional[list[HoldingDistribution]] = None

    @property
    def display_name(self) -> str:
        return self.symbol or self.name or "Asset"


# ------------------------------------------------------------------
# Link widget payloads
# ------------------------------------------------------------------


class LinkedAccount(MeshModel):
    account_id: Optional[str] = None
    account_name: Optional[str] = None


class AccountToken(MeshModel):
    account: Optional[LinkedAccount] = None
    access_token: Optional[str] = None


class AccessTokenPayload(MeshModel):
    account_tokens: Optional[list[AccountToken]] = None
    broker_type: Optional[str] = None
    broker_name: Optional[str] = None


class LinkPayload(MeshModel):
    """Payload of the widget's ``integrationConnected`` event."""

    access_token: Optional[AccessTokenPayload] = None


class TransferFinishedPayload(MeshModel):
    """Payload of the widget's ``transferFinished`` event."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    status: Optional[str] = None
    tx_id: Optional[str] = None
    tx_hash: Optional[str] = None
    amount: Optional[float] = None
    symbol: Optional[str] = None
    to_address: Optional[str] = None
    network_id: Optional[str] = None


class IntegrationAccessToken(MeshModel):
    """Durable credential needed to build later transfer requests."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    account_name: str
    access_token: str
    broker_type: str
    broker_name: str


class LinkEvent(MeshModel):
    """A widget callback delivered by the browser.

    ``link_token`` is optional; when present, events for a session other
    than the one currently open are ignored.
    """

    type: Literal["integrationConnected", "transferFinished", "exit"]
    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    link_token: Optional[str] = None
