"""Connected-account registry for the linked providers.

The registry is responsible for:
- Defining the provider slots (wallet, exchange) and their parameters
- Holding the latest published snapshot per slot (last write wins)
- Holding each slot's refresh capability so the transfer flow can
  refresh both accounts after a transfer
"""

import logging
from typing import Awaitable, Callable

from config import Settings, settings as default_settings
from integrations.provider_protocol import ProviderConfig, ProviderSnapshot

logger = logging.getLogger(__name__)

WALLET_SLOT = "wallet"
EXCHANGE_SLOT = "exchange"

RefreshFn = Callable[[], Awaitable[None]]

# Each tuple is (slot, display_name, integration_id_setting, network_id_setting,
# default_broker_type, verify_wallet). Adding a provider only requires one entry.
PROVIDER_DEFINITIONS: list[tuple[str, str, str, str, str, bool]] = [
    (WALLET_SLOT, "MetaMask", "METAMASK_INTEGRATION_ID", "METAMASK_NETWORK_ID", "metamask", True),
    (EXCHANGE_SLOT, "Binance", "BINANCE_INTEGRATION_ID", "BINANCE_NETWORK_ID", "binance", False),
]

ALL_SLOTS: list[str] = [slot for slot, *_ in PROVIDER_DEFINITIONS]


def build_provider_configs(config: Settings | None = None) -> dict[str, ProviderConfig]:
    """Build the per-slot connector parameters from settings."""
    config = config or default_settings
    configs: dict[str, ProviderConfig] = {}
    for slot, display_name, integration_key, network_key, broker_type, verify in PROVIDER_DEFINITIONS:
        configs[slot] = ProviderConfig(
            slot=slot,
            display_name=display_name,
            integration_id=getattr(config, integration_key),
            network_id=getattr(config, network_key) or None,
            default_symbol=config.TRANSFER_SYMBOL,
            default_broker_type=broker_type,
            verify_wallet=verify,
        )
    return configs


class ConnectedAccountRegistry:
    """Latest snapshot and refresh capability per provider slot.

    Snapshots are immutable values and are replaced wholesale on every
    publish; there is no merging.

    Example:
        registry = ConnectedAccountRegistry()
        registry.publish("wallet", snapshot)
        registry.get_snapshot("wallet")
    """

    def __init__(self, slots: list[str] | None = None):
        self._slots = list(slots or ALL_SLOTS)
        self._snapshots: dict[str, ProviderSnapshot | None] = {s: None for s in self._slots}
        self._refreshers: dict[str, RefreshFn] = {}

    def _check_slot(self, slot: str) -> None:
        if slot not in self._snapshots:
            raise ValueError(f"Unknown provider slot '{slot}'")

    def publish(self, slot: str, snapshot: ProviderSnapshot) -> None:
        """Replace the snapshot for ``slot``."""
        self._check_slot(slot)
        self._snapshots[slot] = snapshot
        logger.debug(
            "Snapshot published for %s (address=%s)",
            slot,
            "resolved" if snapshot.managed_address else "unresolved",
        )

    def publisher(self, slot: str) -> Callable[[ProviderSnapshot], None]:
        """Return a callback that publishes into ``slot``."""
        self._check_slot(slot)
        return lambda snapshot: self.publish(slot, snapshot)

    def get_snapshot(self, slot: str) -> ProviderSnapshot | None:
        """Latest snapshot for ``slot``, or None if never connected."""
        self._check_slot(slot)
        return self._snapshots[slot]

    def register_refresh(self, slot: str, refresh: RefreshFn | None) -> None:
        """Register (or with None, remove) the refresh capability for ``slot``."""
        self._check_slot(slot)
        if refresh is None:
            self._refreshers.pop(slot, None)
        else:
            self._refreshers[slot] = refresh

    def get_refresh(self, slot: str) -> RefreshFn | None:
        self._check_slot(slot)
        return self._refreshers.get(slot)

    def list_slots(self) -> list[str]:
        return list(self._slots)
