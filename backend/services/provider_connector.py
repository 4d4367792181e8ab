"""Provider connector: the link lifecycle of one Mesh provider.

One instance per provider slot (wallet, exchange), parametrized by a
ProviderConfig. The connector requests a link token, opens the widget,
reacts to the widget's connected event, and afterwards keeps cached
holdings and the managed deposit address for the linked account,
publishing a ProviderSnapshot after every refresh.

Errors never propagate out of the public coroutines. They are converted
into typed errors stored on the connector:

- ``link_error``: ConfigurationError, SessionRequestError or WidgetError
- ``holdings_error`` / ``managed_address_error``: DataFetchError, scoped to
  that sub-view; the connection and its token stay valid
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from config import settings
from integrations.exceptions import (
    ConfigurationError,
    DataFetchError,
    ProviderError,
    SessionRequestError,
    WidgetError,
)
from integrations.link_session import HostedLink, LinkFactory, create_link
from integrations.mesh_client import MISSING_CREDENTIALS_MESSAGE
from integrations.provider_protocol import MeshGateway, ProviderConfig, ProviderSnapshot
from schemas.mesh import (
    HoldingPosition,
    IntegrationAccessToken,
    LinkEvent,
    LinkedAccount,
    LinkPayload,
    LinkTokenRequest,
    VerifyWalletOptions,
)
from services.link_token_cache import LinkTokenCache

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_LABEL = "Connected account"


class ConnectorState(str, Enum):
    """Link lifecycle state of a provider connector."""

    IDLE = "idle"
    REQUESTING_SESSION = "requesting_session"
    SESSION_OPEN = "session_open"
    CONNECTED = "connected"
    REFRESHING = "refreshing"
    LINK_ERROR = "link_error"
    DATA_ERROR = "data_error"


# A refresh running alongside a link session leaves the session state alone
_SESSION_STATES = (ConnectorState.REQUESTING_SESSION, ConnectorState.SESSION_OPEN)


class ProviderConnector:
    """Owns one provider's link session, cached holdings and deposit address."""

    def __init__(
        self,
        config: ProviderConfig,
        gateway: MeshGateway,
        on_data_updated: Optional[Callable[[ProviderSnapshot], None]] = None,
        link_factory: LinkFactory = create_link,
        token_cache: LinkTokenCache | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        user_id: str | None = None,
    ):
        self.config = config
        self._gateway = gateway
        self._on_data_updated = on_data_updated
        self._link_factory = link_factory
        self._token_cache = token_cache or LinkTokenCache()
        self._client_id = settings.MESH_CLIENT_ID if client_id is None else client_id
        self._client_secret = (
            settings.MESH_CLIENT_SECRET if client_secret is None else client_secret
        )
        self._user_id = settings.MESH_USER_ID if user_id is None else user_id

        self._link: HostedLink | None = None
        self._disposed = False
        self._requesting_session = False

        self.state = ConnectorState.IDLE
        self.link_error: ProviderError | None = None

        # Identity of the linked account
        self.auth_token: str | None = None
        self.broker_type: str | None = None
        self.integration_token: IntegrationAccessToken | None = None
        self.account_label: str | None = None
        self.institution_name: str | None = None

        # Cached data, refreshed after connection
        self.holdings: list[HoldingPosition] = []
        self.holdings_error: DataFetchError | None = None
        self.is_loading_holdings = False
        self.managed_address: str | None = None
        self.managed_address_error: DataFetchError | None = None
        self.is_loading_address = False
        self.is_refreshing = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def slot(self) -> str:
        return self.config.slot

    @property
    def is_connected(self) -> bool:
        return bool(self.auth_token)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def link_token(self) -> str | None:
        """Token of the currently open widget session, if any."""
        return self._link.link_token if self._link is not None else None

    def _credentials_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._user_id)

    def _settled_state(self) -> ConnectorState:
        """State to return to once nothing is in progress."""
        if not self.is_connected:
            return ConnectorState.IDLE
        if self.holdings_error or self.managed_address_error:
            return ConnectorState.DATA_ERROR
        return ConnectorState.CONNECTED

    def _fail_link(self, error: ProviderError) -> None:
        """Record a link failure. An existing connection is kept."""
        self.link_error = error
        self.state = self._settled_state() if self.is_connected else ConnectorState.LINK_ERROR

    # ------------------------------------------------------------------
    # Widget handle
    # ------------------------------------------------------------------

    def _get_or_create_link(self) -> HostedLink:
        if self._link is None:
            self._link = self._link_factory(
                client_id=self._client_id,
                on_integration_connected=self.handle_integration_connected,
                on_exit=self.handle_exit,
            )
        return self._link

    def _release_link(self) -> None:
        if self._link is not None:
            self._link.close_link()
            self._link = None

    async def dispatch_event(self, event: LinkEvent) -> bool:
        """Deliver a widget event to this connector's session.

        Returns:
            False if there is no live session to deliver to.
        """
        if self._disposed or self._link is None:
            logger.info("%s: ignoring %s event, no live session", self.config.display_name, event.type)
            return False
        return await self._link.dispatch(event)

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    def _link_request(self) -> LinkTokenRequest:
        request = LinkTokenRequest(
            user_id=self._user_id,
            integration_id=self.config.integration_id,
            restrict_multiple_accounts=False,
            disable_api_key_generation=False,
            is_inclusive_fee_enabled=True,
        )
        if self.config.verify_wallet and self.config.network_id:
            request.verify_wallet_options = VerifyWalletOptions(
                network_id=self.config.network_id,
                verification_methods=["signedMessage"],
            )
        return request

    async def connect(self) -> str | None:
        """Request a link token and open a fresh widget session with it.

        Returns:
            The link token for the browser to open, or None on failure
            (see ``link_error``).
        """
        if self._disposed:
            return None
        if self._requesting_session:
            logger.warning("%s: link session request already in progress", self.config.display_name)
            return None

        if not self._credentials_configured():
            self._fail_link(
                ConfigurationError(MISSING_CREDENTIALS_MESSAGE, provider_name=self.config.display_name)
            )
            return None

        self.state = ConnectorState.REQUESTING_SESSION
        self.link_error = None
        self._requesting_session = True

        try:
            link_token = await self._gateway.create_link_token(self._link_request())
        except ConfigurationError as exc:
            self._fail_link(exc)
            return None
        except ProviderError as exc:
            logger.error("%s: failed to get link token: %s", self.config.display_name, exc)
            self._fail_link(SessionRequestError(str(exc), provider_name=self.config.display_name))
            return None
        except Exception:
            logger.exception("%s: failed to get link token", self.config.display_name)
            self._fail_link(
                SessionRequestError(
                    "Failed to fetch Mesh link token.", provider_name=self.config.display_name
                )
            )
            return None
        finally:
            self._requesting_session = False

        if self._disposed:
            return None

        self._token_cache.store(self.slot, link_token)

        # One live session per connector: a new token never reuses an open session
        link = self._get_or_create_link()
        link.close_link()
        link.open_link(link_token)
        self.state = ConnectorState.SESSION_OPEN
        logger.info("%s: link session opened", self.config.display_name)
        return link_token

    # ------------------------------------------------------------------
    # Widget callbacks
    # ------------------------------------------------------------------

    async def handle_integration_connected(self, payload: LinkPayload) -> None:
        """Adopt the account reported by the widget and refresh its data."""
        if self._disposed:
            return

        access = payload.access_token
        primary = access.account_tokens[0] if access and access.account_tokens else None
        auth_token = primary.access_token if primary else None

        if not auth_token:
            # The widget guarantees a token on this event; treat absence as a no-op
            logger.warning("%s: link session completed without an auth token", self.config.display_name)
            return

        account = primary.account or LinkedAccount()
        broker_name = access.broker_name
        account_label = account.account_name or broker_name or DEFAULT_ACCOUNT_LABEL

        # A new connection invalidates everything cached for the previous one
        self.holdings = []
        self.holdings_error = None
        self.managed_address = None
        self.managed_address_error = None

        integration_token = IntegrationAccessToken(
            account_id=account.account_id or account.account_name or "",
            account_name=account.account_name or account_label,
            access_token=auth_token,
            broker_type=access.broker_type or self.config.default_broker_type,
            broker_name=broker_name or self.config.display_name,
        )

        self.account_label = account_label
        self.institution_name = broker_name or self.config.display_name
        self.integration_token = integration_token
        self.auth_token = auth_token
        self.broker_type = access.broker_type
        self.link_error = None
        self.state = ConnectorState.CONNECTED
        logger.info("%s: account connected (%s)", self.config.display_name, account_label)

        await self.refresh(
            auth_token=auth_token,
            broker_type=access.broker_type,
            integration_token=integration_token,
            account_label=account_label,
            broker_name=integration_token.broker_name,
        )

    async def handle_exit(self, error: str | None) -> None:
        """Widget closed. Surface its error, if any, and release the handle."""
        if error:
            logger.error("%s: link exited with error: %s", self.config.display_name, error)
            self.link_error = WidgetError(error, provider_name=self.config.display_name)
        self._release_link()
        if self.state is ConnectorState.SESSION_OPEN:
            self.state = ConnectorState.LINK_ERROR if error else self._settled_state()
        elif error and not self.is_connected:
            self.state = ConnectorState.LINK_ERROR

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _fetch_holdings(self, auth_token: str, broker_type: str | None) -> None:
        self.is_loading_holdings = True
        self.holdings_error = None
        try:
            result = await self._gateway.get_holdings(auth_token, broker_type)
        except Exception as exc:
            logger.error("%s: failed to fetch holdings: %s", self.config.display_name, exc)
            message = str(exc) if isinstance(exc, ProviderError) else "Failed to fetch holdings"
            self.holdings = []
            self.holdings_error = DataFetchError(
                message, provider_name=self.config.display_name, scope="holdings"
            )
            return
        finally:
            self.is_loading_holdings = False

        self.holdings = result.positions
        if result.institution_name:
            self.institution_name = result.institution_name

    async def _fetch_managed_address(self, auth_token: str, broker_type: str | None) -> str | None:
        self.is_loading_address = True
        self.managed_address_error = None
        try:
            address = await self._gateway.get_managed_address(
                auth_token,
                broker_type,
                self.config.network_id,
                self.config.default_symbol,
                cached_address=self.managed_address,
            )
        except Exception as exc:
            logger.error("%s: failed to fetch managed address: %s", self.config.display_name, exc)
            message = (
                str(exc)
                if isinstance(exc, ProviderError)
                else "Failed to fetch managed deposit address."
            )
            self.managed_address = None
            self.managed_address_error = DataFetchError(
                message, provider_name=self.config.display_name, scope="address"
            )
            return None
        finally:
            self.is_loading_address = False

        self.managed_address = address
        return address

    async def refresh(
        self,
        auth_token: str | None = None,
        broker_type: str | None = None,
        integration_token: IntegrationAccessToken | None = None,
        account_label: str | None = None,
        broker_name: str | None = None,
    ) -> None:
        """Re-fetch holdings and the managed address, then publish a snapshot.

        Overrides take precedence over the connector's stored values so a
        caller can refresh with data not yet reflected in this connector.
        Holdings and address are fetched concurrently; either may fail
        without affecting the other, and a snapshot is published regardless.
        """
        effective_token = auth_token if auth_token is not None else self.auth_token
        effective_broker = broker_type if broker_type is not None else self.broker_type
        effective_integration = (
            integration_token if integration_token is not None else self.integration_token
        )
        effective_label = account_label if account_label is not None else self.account_label
        effective_broker_name = broker_name if broker_name is not None else self.institution_name

        if not effective_token:
            logger.warning("%s: no Mesh auth token available for refresh", self.config.display_name)
            return

        self.is_refreshing = True
        if self.state not in _SESSION_STATES:
            self.state = ConnectorState.REFRESHING
        try:
            _, latest_address = await asyncio.gather(
                self._fetch_holdings(effective_token, effective_broker),
                self._fetch_managed_address(effective_token, effective_broker),
            )
            address_to_report = (
                latest_address if isinstance(latest_address, str) else self.managed_address
            )

            if self._disposed:
                logger.debug("%s: discarding refresh result after teardown", self.config.display_name)
                return

            snapshot = ProviderSnapshot(
                auth_token=effective_token,
                broker_type=effective_broker,
                broker_name=effective_broker_name,
                account_label=effective_label,
                integration_token=effective_integration,
                managed_address=address_to_report,
                network_id=self.config.network_id,
            )
            if self._on_data_updated is not None:
                self._on_data_updated(snapshot)
        finally:
            self.is_refreshing = False
            if self.state is ConnectorState.REFRESHING:
                self.state = self._settled_state()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close any open widget session and make late results inert."""
        self._disposed = True
        self._release_link()
