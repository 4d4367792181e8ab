"""Provider connector API endpoints.

The browser drives each provider's link flow through these routes:
request a link token (connect), open Mesh Link with it, and post the
widget's callback events back to ``/events``.
"""

import logging

from fastapi import APIRouter, Depends

from api.helpers import (
    build_connector_view,
    get_connector_or_404,
    get_link_service,
    raise_for_error,
)
from schemas.connector import ConnectorView, ConnectResponse, EventResponse
from schemas.mesh import LinkEvent
from services.link_service import LinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/providers", tags=["providers"])


@router.get("", response_model=list[ConnectorView])
def list_connectors(service: LinkService = Depends(get_link_service)):
    """List every provider connector with its current state."""
    return [build_connector_view(c) for c in service.connectors.values()]


@router.get("/{slot}", response_model=ConnectorView)
def get_connector(slot: str, service: LinkService = Depends(get_link_service)):
    """Current state of one provider connector."""
    return build_connector_view(get_connector_or_404(service, slot))


@router.post("/{slot}/connect", response_model=ConnectResponse)
async def connect(slot: str, service: LinkService = Depends(get_link_service)):
    """Request a link token and open a widget session for the provider."""
    connector = get_connector_or_404(service, slot)
    link_token = await connector.connect()
    if link_token is None:
        raise_for_error(connector.link_error, "Link session request already in progress")
    return ConnectResponse(link_token=link_token)


@router.post("/{slot}/refresh", response_model=ConnectorView)
async def refresh(slot: str, service: LinkService = Depends(get_link_service)):
    """Re-fetch holdings and the managed deposit address."""
    connector = get_connector_or_404(service, slot)
    await connector.refresh()
    return build_connector_view(connector)


@router.post("/{slot}/events", response_model=EventResponse)
async def deliver_event(
    slot: str,
    event: LinkEvent,
    service: LinkService = Depends(get_link_service),
):
    """Deliver a Mesh Link callback event for the provider's session."""
    connector = get_connector_or_404(service, slot)
    applied = await connector.dispatch_event(event)
    return EventResponse(applied=applied)
