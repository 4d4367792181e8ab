"""Shared data types for the link and transfer flow.

This module defines the normalized values passed between the gateway
client, the provider connectors, the account registry and the transfer
coordinator, plus the protocol the gateway client implements.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol

from schemas.mesh import HoldingPosition, IntegrationAccessToken, LinkTokenRequest


@dataclass(frozen=True)
class ProviderConfig:
    """Provider-specific parameters for one connector instance."""

    slot: str  # Registry key, e.g. "wallet" or "exchange"
    display_name: str  # Human-readable provider name, e.g. "MetaMask"
    integration_id: str  # Mesh integration id used for link sessions
    network_id: str | None = None  # Network for managed address / verification
    default_symbol: str = "USDC"  # Asset symbol for managed address lookups
    default_broker_type: str = ""  # Fallback when the widget omits brokerType
    verify_wallet: bool = False  # Send verifyWalletOptions on plain link sessions


@dataclass(frozen=True)
class ProviderSnapshot:
    """Normalized, publishable state of one provider connection.

    Immutable: collaborators receive values, never live references.
    """

    auth_token: str
    broker_type: str | None = None
    broker_name: str | None = None
    account_label: str | None = None
    integration_token: IntegrationAccessToken | None = None
    managed_address: str | None = None
    network_id: str | None = None

    def __post_init__(self):
        if not self.auth_token:
            raise ValueError("ProviderSnapshot requires a non-empty auth_token")


@dataclass
class HoldingsResult:
    """Holdings returned by the gateway, crypto positions first."""

    positions: list[HoldingPosition] = field(default_factory=list)
    institution_name: str | None = None


@dataclass(frozen=True)
class TransferRequest:
    """Validated parameters for one transfer attempt."""

    network_id: str
    address: str
    symbol: str
    amount: float


class MeshGateway(Protocol):
    """Protocol for the remote Mesh gateway client."""

    async def create_link_token(self, request: LinkTokenRequest) -> str:
        """Create a link session and return its link token.

        Raises:
            ConfigurationError: If credentials are not configured.
            ProviderError: If the request fails or returns no token.
        """
        ...

    async def get_holdings(
        self, auth_token: str, broker_type: Optional[str] = None
    ) -> HoldingsResult:
        """Fetch holdings for a connected account."""
        ...

    async def get_managed_address(
        self,
        auth_token: str,
        broker_type: Optional[str] = None,
        network_id: Optional[str] = None,
        symbol: Optional[str] = None,
        cached_address: Optional[str] = None,
    ) -> Optional[str]:
        """Resolve the managed deposit address for a network/symbol pair.

        Returns ``cached_address`` unchanged without a network call when
        ``network_id`` or ``symbol`` is missing.
        """
        ...

    async def close(self) -> None:
        ...
