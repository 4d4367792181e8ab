"""Pydantic schemas for the provider connector API."""

from typing import Optional

from pydantic import BaseModel


class HoldingView(BaseModel):
    """One holdings line, formatted for display."""

    display_name: str
    name: Optional[str] = None  # Shown under display_name when it differs
    amount: str
    fiat_value: Optional[str] = None


class ConnectorView(BaseModel):
    """Current state of one provider connector."""

    slot: str
    provider: str
    state: str
    is_connected: bool
    account_label: Optional[str] = None
    institution_name: Optional[str] = None
    holdings: list[HoldingView] = []
    holdings_error: Optional[str] = None
    is_loading_holdings: bool = False
    managed_address: Optional[str] = None
    managed_address_error: Optional[str] = None
    is_loading_address: bool = False
    is_refreshing: bool = False
    link_error: Optional[str] = None
    link_token: Optional[str] = None


class ConnectResponse(BaseModel):
    link_token: str


class EventResponse(BaseModel):
    applied: bool
