"""Transfer coordinator: guided transfer from the wallet to the exchange.

Validates the two published account snapshots and the entered amount,
requests a transfer-flavored link token, opens a dedicated widget
session, and refreshes both connectors once the widget reports the
transfer finished.

At most one transfer session is live at a time. Like the connectors,
the coordinator stores errors instead of raising them:
``transfer_error`` holds a ConfigurationError, TransferValidationError,
SessionRequestError or WidgetError.
"""

import asyncio
import logging
import math
import re

from config import settings
from integrations.account_registry import ConnectedAccountRegistry
from integrations.exceptions import (
    ConfigurationError,
    ProviderError,
    SessionRequestError,
    TransferValidationError,
    WidgetError,
)
from integrations.link_session import HostedLink, LinkFactory, create_link
from integrations.mesh_client import MISSING_CREDENTIALS_MESSAGE
from integrations.provider_protocol import (
    MeshGateway,
    ProviderConfig,
    ProviderSnapshot,
    TransferRequest,
)
from schemas.mesh import (
    LinkEvent,
    LinkTokenRequest,
    TransferFinishedPayload,
    TransferOptions,
    TransferToAddress,
    VerifyWalletOptions,
)

logger = logging.getLogger(__name__)

# Leading decimal number, the way a browser's parseFloat reads input
_AMOUNT_PATTERN = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_amount(text: str | None) -> float | None:
    """Parse the leading decimal number of ``text``.

    Returns:
        The parsed value, or None if ``text`` does not start with a
        finite number.
    """
    if not text:
        return None
    match = _AMOUNT_PATTERN.match(text)
    if match is None:
        return None
    value = float(match.group(0))
    return value if math.isfinite(value) else None


class TransferCoordinator:
    """Drives transfer sessions between a source and a destination slot."""

    def __init__(
        self,
        registry: ConnectedAccountRegistry,
        gateway: MeshGateway,
        source: ProviderConfig,
        destination: ProviderConfig,
        link_factory: LinkFactory = create_link,
        symbol: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        user_id: str | None = None,
    ):
        self._registry = registry
        self._gateway = gateway
        self.source = source
        self.destination = destination
        self._link_factory = link_factory
        self.symbol = symbol or settings.TRANSFER_SYMBOL
        self._client_id = settings.MESH_CLIENT_ID if client_id is None else client_id
        self._client_secret = (
            settings.MESH_CLIENT_SECRET if client_secret is None else client_secret
        )
        self._user_id = settings.MESH_USER_ID if user_id is None else user_id

        self._link: HostedLink | None = None
        self._disposed = False

        self.amount_text = ""
        self.transfer_error: ProviderError | None = None
        self.transfer_details: TransferFinishedPayload | None = None
        self.is_transferring = False

    @property
    def link_token(self) -> str | None:
        """Token of the open transfer session, if any."""
        return self._link.link_token if self._link is not None else None

    @property
    def source_snapshot(self) -> ProviderSnapshot | None:
        return self._registry.get_snapshot(self.source.slot)

    @property
    def destination_snapshot(self) -> ProviderSnapshot | None:
        return self._registry.get_snapshot(self.destination.slot)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def set_amount(self, amount_text: str) -> None:
        """Record an amount edit. Any previous transfer error is cleared."""
        self.amount_text = amount_text
        if self.transfer_error is not None:
            self.transfer_error = None

    def resolve_network_ids(self, destination: ProviderSnapshot | None) -> tuple[str, str]:
        """Destination and verification network ids for a transfer session.

        Raises:
            TransferValidationError: If either cannot be determined.
        """
        fallback = self.source.network_id or self.source.integration_id or ""
        destination_network_id = (destination.network_id if destination else None) or fallback
        verification_network_id = fallback
        if not destination_network_id or not verification_network_id:
            raise TransferValidationError(
                "Unable to determine network id for transfer.",
                provider_name=self.source.display_name,
            )
        return destination_network_id, verification_network_id

    def validate(self, amount_text: str | None = None) -> TransferRequest:
        """Check every transfer precondition, in order.

        Raises:
            ConfigurationError: Credentials are not configured.
            TransferValidationError: An account or the amount is not usable.
        """
        if not (self._client_id and self._client_secret and self._user_id):
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE, provider_name="Mesh")

        source_name = self.source.display_name
        destination_name = self.destination.display_name
        source = self.source_snapshot
        destination = self.destination_snapshot

        if source is None:
            raise TransferValidationError(
                f"Connect {source_name} before transferring.", provider_name=source_name
            )
        if source.integration_token is None or not source.auth_token:
            raise TransferValidationError(
                f"{source_name} authorization is incomplete. Refresh the connection and try again.",
                provider_name=source_name,
            )
        if destination is None:
            raise TransferValidationError(
                f"Connect {destination_name} before initiating a transfer.",
                provider_name=destination_name,
            )
        if destination.integration_token is None:
            raise TransferValidationError(
                f"{destination_name} authorization is incomplete. Refresh the connection and try again.",
                provider_name=destination_name,
            )
        if not destination.managed_address:
            raise TransferValidationError(
                f"{destination_name} managed deposit address is unavailable. "
                f"Refresh the {destination_name} connection and try again.",
                provider_name=destination_name,
            )

        text = self.amount_text if amount_text is None else amount_text
        amount = parse_amount(text)
        if amount is None or amount <= 0:
            raise TransferValidationError(f"Enter a valid {self.symbol} amount greater than 0.")

        network_id, _ = self.resolve_network_ids(destination)
        return TransferRequest(
            network_id=network_id,
            address=destination.managed_address,
            symbol=self.symbol,
            amount=amount,
        )

    def validation_message(self, amount_text: str | None = None) -> str | None:
        """The first failing precondition's message, or None."""
        try:
            self.validate(amount_text)
        except ProviderError as exc:
            return str(exc)
        return None

    def can_transfer(self, amount_text: str | None = None) -> bool:
        """True when every precondition holds and no transfer is starting."""
        return self.validation_message(amount_text) is None and not self.is_transferring

    # ------------------------------------------------------------------
    # Transfer session
    # ------------------------------------------------------------------

    def _release_link(self) -> None:
        if self._link is not None:
            self._link.close_link()
            self._link = None

    def _transfer_link_request(
        self, request: TransferRequest, verification_network_id: str
    ) -> LinkTokenRequest:
        return LinkTokenRequest(
            user_id=self._user_id,
            integration_id=self.source.integration_id,
            restrict_multiple_accounts=False,
            disable_api_key_generation=False,
            # Transfers pass the entered amount through without fee adjustment
            is_inclusive_fee_enabled=False,
            verify_wallet_options=VerifyWalletOptions(
                network_id=verification_network_id,
                verification_methods=["signedMessage"],
            ),
            transfer_options=TransferOptions(
                to_addresses=[
                    TransferToAddress(
                        network_id=request.network_id,
                        symbol=request.symbol,
                        address=request.address,
                        amount=request.amount,
                    )
                ],
                is_inclusive_fee_enabled=False,
            ),
        )

    async def start_transfer(self, amount_text: str | None = None) -> str | None:
        """Validate, request a transfer link token and open the transfer widget.

        Returns:
            The link token for the browser to open, or None (see
            ``transfer_error``).
        """
        if self._disposed:
            return None
        if amount_text is not None:
            self.amount_text = amount_text
        if self.is_transferring:
            logger.warning("Transfer session request already in progress")
            return None

        try:
            request = self.validate()
            _, verification_network_id = self.resolve_network_ids(self.destination_snapshot)
        except ProviderError as exc:
            self.transfer_error = exc
            return None

        self.transfer_error = None
        self.transfer_details = None
        self.is_transferring = True

        try:
            # One transfer session at a time
            self._release_link()
            link = self._link_factory(
                client_id=self._client_id,
                access_tokens=[],
                transfer_destination_tokens=[],
                on_transfer_finished=self.handle_transfer_finished,
                on_exit=self.handle_exit,
            )
            self._link = link

            link_token = await self._gateway.create_link_token(
                self._transfer_link_request(request, verification_network_id)
            )

            if self._link is not link:
                logger.info("Transfer session was closed before its token arrived")
                return None

            logger.info(
                "Initiating transfer of %s %s from %s to %s",
                request.amount,
                request.symbol,
                (self.source_snapshot.account_label if self.source_snapshot else None)
                or self.source.display_name,
                (self.destination_snapshot.account_label if self.destination_snapshot else None)
                or self.destination.display_name,
            )
            link.open_link(link_token)
            return link_token
        except ConfigurationError as exc:
            self._release_link()
            self.transfer_error = exc
            return None
        except ProviderError as exc:
            logger.error("Failed to initiate transfer: %s", exc)
            self._release_link()
            self.transfer_error = SessionRequestError(str(exc), provider_name=exc.provider_name)
            return None
        except Exception:
            logger.exception("Failed to initiate transfer")
            self._release_link()
            self.transfer_error = SessionRequestError("Failed to initiate transfer session.")
            return None
        finally:
            self.is_transferring = False

    async def handle_transfer_finished(self, payload: TransferFinishedPayload) -> None:
        """Record the completion and refresh both accounts.

        Refresh failures are logged only; the transfer already succeeded.
        """
        if self._disposed:
            return
        self.transfer_details = payload
        logger.info(
            "Transfer finished: %s %s (tx=%s)",
            payload.amount,
            payload.symbol,
            payload.tx_id or payload.tx_hash or "N/A",
        )

        refreshers = [
            refresh
            for refresh in (
                self._registry.get_refresh(self.source.slot),
                self._registry.get_refresh(self.destination.slot),
            )
            if refresh is not None
        ]

        try:
            results = await asyncio.gather(
                *(refresh() for refresh in refreshers), return_exceptions=True
            )
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Failed to refresh after transfer: %s", result)
        finally:
            self._release_link()

    async def handle_exit(self, error: str | None) -> None:
        """Transfer widget closed. Surface its error, if any."""
        if error:
            logger.error("Transfer link exited with error: %s", error)
            self.transfer_error = WidgetError(error, provider_name=self.source.display_name)
        self._release_link()

    async def dispatch_event(self, event: LinkEvent) -> bool:
        """Deliver a widget event to the transfer session."""
        if self._disposed or self._link is None:
            logger.info("Ignoring transfer %s event, no live session", event.type)
            return False
        return await self._link.dispatch(event)

    def close(self) -> None:
        """Close any open transfer session."""
        self._disposed = True
        self._release_link()
