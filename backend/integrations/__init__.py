"""External API integrations.

This package contains:
- Provider protocol: Shared snapshot/config types and the gateway protocol
- Account registry: Latest snapshot and refresh capability per provider slot
- Mesh client: Integration with the Mesh integration API
- Link session: Backend handle for a browser-hosted Mesh Link session
"""

from integrations.account_registry import ConnectedAccountRegistry
from integrations.provider_protocol import (
    HoldingsResult,
    ProviderConfig,
    ProviderSnapshot,
    TransferRequest,
)

__all__ = [
    "ConnectedAccountRegistry",
    "HoldingsResult",
    "ProviderConfig",
    "ProviderSnapshot",
    "TransferRequest",
]
