"""Transfer API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.helpers import get_link_service, raise_for_error
from schemas.connector import EventResponse
from schemas.mesh import LinkEvent
from schemas.transfer import (
    AmountUpdateRequest,
    TransferDetailsView,
    TransferStartRequest,
    TransferStartResponse,
    TransferView,
)
from services.link_service import LinkService
from services.transfer_coordinator import TransferCoordinator
from utils.formatting import format_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transfer", tags=["transfer"])


def _build_transfer_view(
    coordinator: TransferCoordinator, amount: Optional[str] = None
) -> TransferView:
    amount_text = coordinator.amount_text if amount is None else amount
    source = coordinator.source_snapshot
    destination = coordinator.destination_snapshot
    destination_address = destination.managed_address if destination else None

    details = None
    payload = coordinator.transfer_details
    if payload is not None:
        details = TransferDetailsView(
            amount=" ".join(
                part
                for part in (
                    format_number(payload.amount) if payload.amount is not None else None,
                    payload.symbol,
                )
                if part
            ),
            tx_id=payload.tx_id or "N/A",
            tx_hash=payload.tx_hash,
            to_address=payload.to_address,
            status=payload.status,
        )

    return TransferView(
        source=(source.account_label if source else None)
        or f"{coordinator.source.display_name} connection required",
        destination=(destination.account_label if destination else None)
        or f"{coordinator.destination.display_name} connection required",
        deposit_address=destination_address or "Not available yet",
        destination_address=destination_address,
        amount=amount_text,
        can_transfer=coordinator.can_transfer(amount_text),
        validation_message=coordinator.validation_message(amount_text),
        transfer_error=str(coordinator.transfer_error) if coordinator.transfer_error else None,
        is_transferring=coordinator.is_transferring,
        link_token=coordinator.link_token,
        details=details,
    )


@router.get("", response_model=TransferView)
def get_transfer(
    amount: Optional[str] = None,
    service: LinkService = Depends(get_link_service),
):
    """Transfer form state, optionally evaluated for a candidate amount."""
    return _build_transfer_view(service.transfers, amount)


@router.post("/amount", response_model=TransferView)
def update_amount(
    body: AmountUpdateRequest,
    service: LinkService = Depends(get_link_service),
):
    """Record an amount edit; clears any previous transfer error."""
    service.transfers.set_amount(body.amount)
    return _build_transfer_view(service.transfers)


@router.post("", response_model=TransferStartResponse)
async def start_transfer(
    body: TransferStartRequest,
    service: LinkService = Depends(get_link_service),
):
    """Validate the transfer and open a transfer widget session."""
    coordinator = service.transfers
    link_token = await coordinator.start_transfer(body.amount)
    if link_token is None:
        raise_for_error(coordinator.transfer_error, "Transfer session request already in progress")
    return TransferStartResponse(link_token=link_token)


@router.post("/events", response_model=EventResponse)
async def deliver_event(
    event: LinkEvent,
    service: LinkService = Depends(get_link_service),
):
    """Deliver a Mesh Link callback event for the transfer session."""
    applied = await service.transfers.dispatch_event(event)
    return EventResponse(applied=applied)
