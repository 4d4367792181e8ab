"""Link service: wires the gateway, registry, connectors and transfers.

This is the coordinating parent of the link flow. It owns one
ProviderConnector per provider slot, publishes their snapshots into the
ConnectedAccountRegistry, registers their refresh capability there, and
owns the TransferCoordinator that reads from the registry.
"""

import logging

from config import Settings, settings as default_settings
from integrations.account_registry import (
    EXCHANGE_SLOT,
    WALLET_SLOT,
    ConnectedAccountRegistry,
    build_provider_configs,
)
from integrations.link_session import LinkFactory, create_link
from integrations.mesh_client import MeshClient
from integrations.provider_protocol import MeshGateway
from services.link_token_cache import LinkTokenCache
from services.provider_connector import ProviderConnector
from services.transfer_coordinator import TransferCoordinator

logger = logging.getLogger(__name__)


class LinkService:
    """Owns every connector and the transfer coordinator for one user.

    Example:
        service = LinkService()
        link_token = await service.get_connector("wallet").connect()
        ...
        await service.close()
    """

    def __init__(
        self,
        gateway: MeshGateway | None = None,
        registry: ConnectedAccountRegistry | None = None,
        link_factory: LinkFactory = create_link,
        token_cache: LinkTokenCache | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self.gateway = gateway or MeshClient(
            client_id=config.MESH_CLIENT_ID,
            client_secret=config.MESH_CLIENT_SECRET,
            base_url=config.MESH_API_BASE_URL,
            timeout=config.MESH_REQUEST_TIMEOUT,
        )
        self.registry = registry or ConnectedAccountRegistry()
        self.provider_configs = build_provider_configs(config)
        token_cache = token_cache or LinkTokenCache(config.LINK_TOKEN_CACHE_PATH or None)

        credentials = {
            "client_id": config.MESH_CLIENT_ID,
            "client_secret": config.MESH_CLIENT_SECRET,
            "user_id": config.MESH_USER_ID,
        }

        self.connectors: dict[str, ProviderConnector] = {}
        for slot, provider_config in self.provider_configs.items():
            connector = ProviderConnector(
                provider_config,
                self.gateway,
                on_data_updated=self.registry.publisher(slot),
                link_factory=link_factory,
                token_cache=token_cache,
                **credentials,
            )
            self.connectors[slot] = connector
            self.registry.register_refresh(slot, connector.refresh)

        self.transfers = TransferCoordinator(
            self.registry,
            self.gateway,
            source=self.provider_configs[WALLET_SLOT],
            destination=self.provider_configs[EXCHANGE_SLOT],
            link_factory=link_factory,
            symbol=config.TRANSFER_SYMBOL,
            **credentials,
        )

        if not config.has_mesh_credentials():
            logger.warning("Mesh credentials are not configured; linking is disabled")

    def get_connector(self, slot: str) -> ProviderConnector:
        """Get the connector for ``slot``.

        Raises:
            ValueError: If the slot is unknown.
        """
        if slot not in self.connectors:
            raise ValueError(f"Unknown provider slot '{slot}'")
        return self.connectors[slot]

    async def close(self) -> None:
        """Close every widget session, then the HTTP client."""
        try:
            self.transfers.close()
            for slot, connector in self.connectors.items():
                connector.close()
                self.registry.register_refresh(slot, None)
        finally:
            await self.gateway.close()
        logger.info("Link service closed")
