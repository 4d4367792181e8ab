"""Mock implementations for external services."""

import asyncio
from typing import Any

from integrations.exceptions import ProviderAPIError
from integrations.link_session import HostedLink
from integrations.provider_protocol import HoldingsResult, ProviderConfig, ProviderSnapshot
from schemas.mesh import (
    HoldingPosition,
    IntegrationAccessToken,
    LinkEvent,
    LinkPayload,
    LinkTokenRequest,
)

SAMPLE_HOLDINGS = [
    HoldingPosition(symbol="ETH", name="Ethereum", amount=1.5, fiat_amount=4500.0, fiat_currency="USD"),
]

DEAD_ADDRESS = "0xDEADbeef00000000000000000000000000000001"

WALLET_CONFIG = ProviderConfig(
    slot="wallet",
    display_name="MetaMask",
    integration_id="metamask",
    network_id="eth-mainnet",
    default_symbol="USDC",
    default_broker_type="metamask",
    verify_wallet=True,
)

EXCHANGE_CONFIG = ProviderConfig(
    slot="exchange",
    display_name="Binance",
    integration_id="binance",
    network_id="eth-mainnet",
    default_symbol="USDC",
    default_broker_type="binance",
    verify_wallet=False,
)

CREDENTIALS = {"client_id": "test-client-id", "client_secret": "test-secret", "user_id": "user-1"}


class MockMeshClient:
    """Mock Mesh gateway recording every call.

    Failures are configured per operation with a ``*_error`` exception.
    ``holdings_gate`` lets a test hold get_holdings until it is set.
    """

    def __init__(
        self,
        holdings: list[HoldingPosition] | None = None,
        institution_name: str | None = None,
        managed_address: str | None = DEAD_ADDRESS,
        link_error: Exception | None = None,
        holdings_error: Exception | None = None,
        address_error: Exception | None = None,
    ):
        self.holdings = list(holdings or [])
        self.institution_name = institution_name
        self.managed_address = managed_address
        self.link_error = link_error
        self.holdings_error = holdings_error
        self.address_error = address_error
        self.holdings_gate: asyncio.Event | None = None

        self.link_requests: list[LinkTokenRequest] = []
        self.holdings_calls: list[tuple[str, str | None]] = []
        self.address_calls: list[tuple[str, str | None, str | None, str | None]] = []
        self.closed = False

    async def create_link_token(self, request: LinkTokenRequest) -> str:
        self.link_requests.append(request)
        if self.link_error is not None:
            raise self.link_error
        return f"link-token-{len(self.link_requests)}"

    async def get_holdings(self, auth_token: str, broker_type: str | None = None) -> HoldingsResult:
        self.holdings_calls.append((auth_token, broker_type))
        if self.holdings_gate is not None:
            await self.holdings_gate.wait()
        if self.holdings_error is not None:
            raise self.holdings_error
        return HoldingsResult(positions=list(self.holdings), institution_name=self.institution_name)

    async def get_managed_address(
        self,
        auth_token: str,
        broker_type: str | None = None,
        network_id: str | None = None,
        symbol: str | None = None,
        cached_address: str | None = None,
    ) -> str | None:
        if not network_id or not symbol:
            return cached_address
        self.address_calls.append((auth_token, broker_type, network_id, symbol))
        if self.address_error is not None:
            raise self.address_error
        return self.managed_address

    async def close(self) -> None:
        self.closed = True


class RecordingLinkFactory:
    """Link factory that keeps every HostedLink it creates."""

    def __init__(self):
        self.links: list[HostedLink] = []
        self.kwargs: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> HostedLink:
        self.kwargs.append(kwargs)
        link = HostedLink(**kwargs)
        self.links.append(link)
        return link

    @property
    def last(self) -> HostedLink:
        return self.links[-1]


def make_link_payload(
    access_token: str | None = "tok_A",
    account_name: str | None = "Wallet A",
    account_id: str | None = "acct-1",
    broker_type: str | None = "metamask",
    broker_name: str | None = "MetaMask",
) -> dict[str, Any]:
    """Build an integrationConnected payload the way the widget reports it."""
    account_tokens = []
    if access_token is not None:
        account_tokens.append(
            {
                "account": {"accountId": account_id, "accountName": account_name},
                "accessToken": access_token,
            }
        )
    return {
        "accessToken": {
            "accountTokens": account_tokens,
            "brokerType": broker_type,
            "brokerName": broker_name,
        }
    }


def connected_event(**kwargs: Any) -> LinkEvent:
    return LinkEvent(type="integrationConnected", payload=make_link_payload(**kwargs))


def connected_payload(**kwargs: Any) -> LinkPayload:
    return LinkPayload.model_validate(make_link_payload(**kwargs))


def transfer_finished_event(**payload: Any) -> LinkEvent:
    body = {
        "status": "success",
        "txId": "tx-123",
        "txHash": "0xabc",
        "amount": 10,
        "symbol": "USDC",
        "toAddress": DEAD_ADDRESS,
    }
    body.update(payload)
    return LinkEvent(type="transferFinished", payload=body)


def make_snapshot(
    auth_token: str = "tok_A",
    account_label: str | None = "Wallet A",
    broker_type: str = "metamask",
    broker_name: str = "MetaMask",
    managed_address: str | None = None,
    network_id: str | None = "eth-mainnet",
    with_integration_token: bool = True,
) -> ProviderSnapshot:
    integration_token = None
    if with_integration_token:
        integration_token = IntegrationAccessToken(
            account_id="acct-1",
            account_name=account_label or "Connected account",
            access_token=auth_token,
            broker_type=broker_type,
            broker_name=broker_name,
        )
    return ProviderSnapshot(
        auth_token=auth_token,
        broker_type=broker_type,
        broker_name=broker_name,
        account_label=account_label,
        integration_token=integration_token,
        managed_address=managed_address,
        network_id=network_id,
    )


def api_error(message: str, status_code: int = 400) -> ProviderAPIError:
    return ProviderAPIError(message, provider_name="Mesh", status_code=status_code)
