"""Shared API helpers for route handlers.

Dependency providers, error mapping and view builders used across the
connector and transfer route files.
"""

from fastapi import HTTPException, Request

from integrations.exceptions import (
    ConfigurationError,
    ProviderError,
    SessionRequestError,
    TransferValidationError,
)
from schemas.connector import ConnectorView, HoldingView
from schemas.mesh import HoldingPosition
from services.link_service import LinkService
from services.provider_connector import ProviderConnector
from utils.formatting import format_fiat, format_number


def get_link_service(request: Request) -> LinkService:
    """Dependency returning the app's LinkService (overridable in tests)."""
    return request.app.state.link_service


def get_connector_or_404(service: LinkService, slot: str) -> ProviderConnector:
    """Look up a connector by slot or raise 404.

    Raises:
        HTTPException: 404 if the slot is unknown.
    """
    try:
        return service.get_connector(slot)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {slot}")


def error_status_code(error: ProviderError) -> int:
    """HTTP status for an error stored by a connector or the coordinator."""
    if isinstance(error, ConfigurationError):
        return 400
    if isinstance(error, TransferValidationError):
        return 422
    if isinstance(error, SessionRequestError):
        return 502
    return 500


def raise_for_error(error: ProviderError | None, fallback: str) -> None:
    """Raise an HTTPException carrying ``error``'s message.

    Raises:
        HTTPException: Always.
    """
    if error is None:
        raise HTTPException(status_code=409, detail=fallback)
    raise HTTPException(status_code=error_status_code(error), detail=str(error))


def build_holding_view(position: HoldingPosition) -> HoldingView:
    """Format one position the way the holdings list displays it."""
    secondary = None
    if position.name and position.symbol and position.name != position.symbol:
        secondary = position.name
    fiat_value = None
    if position.fiat_amount is not None:
        fiat_value = format_fiat(position.fiat_amount, position.fiat_currency)
    return HoldingView(
        display_name=position.display_name,
        name=secondary,
        amount=format_number(position.amount),
        fiat_value=fiat_value,
    )


def build_connector_view(connector: ProviderConnector) -> ConnectorView:
    """Snapshot of a connector's state for the API."""
    return ConnectorView(
        slot=connector.slot,
        provider=connector.config.display_name,
        state=connector.state.value,
        is_connected=connector.is_connected,
        account_label=connector.account_label,
        institution_name=connector.institution_name,
        holdings=[build_holding_view(p) for p in connector.holdings],
        holdings_error=str(connector.holdings_error) if connector.holdings_error else None,
        is_loading_holdings=connector.is_loading_holdings,
        managed_address=connector.managed_address,
        managed_address_error=(
            str(connector.managed_address_error) if connector.managed_address_error else None
        ),
        is_loading_address=connector.is_loading_address,
        is_refreshing=connector.is_refreshing,
        link_error=str(connector.link_error) if connector.link_error else None,
        link_token=connector.link_token,
    )
