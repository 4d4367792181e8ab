"""Pydantic schemas for the transfer API."""

from typing import Optional

from pydantic import BaseModel


class TransferDetailsView(BaseModel):
    """Completion details reported by the transfer widget."""

    amount: str
    tx_id: str
    tx_hash: Optional[str] = None
    to_address: Optional[str] = None
    status: Optional[str] = None


class TransferView(BaseModel):
    """State of the transfer form."""

    source: str
    destination: str
    deposit_address: str
    destination_address: Optional[str] = None
    amount: str
    can_transfer: bool
    validation_message: Optional[str] = None
    transfer_error: Optional[str] = None
    is_transferring: bool = False
    link_token: Optional[str] = None
    details: Optional[TransferDetailsView] = None


class TransferStartRequest(BaseModel):
    amount: str


class AmountUpdateRequest(BaseModel):
    amount: str


class TransferStartResponse(BaseModel):
    link_token: str
