"""Tests for the HostedLink widget handle."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from integrations.exceptions import WidgetError
from integrations.link_session import HostedLink, create_link
from schemas.mesh import LinkEvent, LinkPayload, TransferFinishedPayload
from tests.fixtures.mocks import connected_event, transfer_finished_event


class TestOpenClose:
    def test_open_and_close(self):
        link = HostedLink(client_id="cid")

        link.open_link("lt-1")
        assert link.is_open
        assert link.link_token == "lt-1"

        link.close_link()
        assert not link.is_open
        assert link.link_token is None

    def test_close_is_idempotent(self):
        link = HostedLink(client_id="cid")

        link.close_link()
        link.close_link()

        assert link.link_token is None

    def test_open_twice_rejected(self):
        link = HostedLink(client_id="cid")
        link.open_link("lt-1")

        with pytest.raises(WidgetError):
            link.open_link("lt-2")

    def test_open_without_token_rejected(self):
        with pytest.raises(WidgetError):
            HostedLink(client_id="cid").open_link("")

    def test_create_link_factory(self):
        link = create_link(client_id="cid", access_tokens=[], transfer_destination_tokens=[])

        assert isinstance(link, HostedLink)
        assert link.access_tokens == []
        assert link.transfer_destination_tokens == []


class TestDispatch:
    @pytest.mark.asyncio
    async def test_connected_event_parsed(self):
        on_connected = AsyncMock()
        link = HostedLink(client_id="cid", on_integration_connected=on_connected)
        link.open_link("lt-1")

        assert await link.dispatch(connected_event()) is True

        payload = on_connected.await_args.args[0]
        assert isinstance(payload, LinkPayload)
        assert payload.access_token.broker_type == "metamask"
        assert payload.access_token.account_tokens[0].access_token == "tok_A"
        assert payload.access_token.account_tokens[0].account.account_name == "Wallet A"

    @pytest.mark.asyncio
    async def test_transfer_finished_parsed(self):
        on_finished = MagicMock()
        link = HostedLink(client_id="cid", on_transfer_finished=on_finished)
        link.open_link("lt-1")

        await link.dispatch(transfer_finished_event(txId="tx-9"))

        payload = on_finished.call_args.args[0]
        assert isinstance(payload, TransferFinishedPayload)
        assert payload.tx_id == "tx-9"
        assert payload.status == "success"

    @pytest.mark.asyncio
    async def test_exit_passes_error(self):
        on_exit = AsyncMock()
        link = HostedLink(client_id="cid", on_exit=on_exit)
        link.open_link("lt-1")

        await link.dispatch(LinkEvent(type="exit", error="closed by user"))

        on_exit.assert_awaited_once_with("closed by user")

    @pytest.mark.asyncio
    async def test_ignored_when_closed(self):
        on_connected = AsyncMock()
        link = HostedLink(client_id="cid", on_integration_connected=on_connected)

        assert await link.dispatch(connected_event()) is False
        on_connected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ignored_for_other_token(self):
        on_exit = AsyncMock()
        link = HostedLink(client_id="cid", on_exit=on_exit)
        link.open_link("lt-2")

        event = LinkEvent(type="exit", link_token="lt-1")

        assert await link.dispatch(event) is False
        on_exit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_matching_token_applied(self):
        on_exit = AsyncMock()
        link = HostedLink(client_id="cid", on_exit=on_exit)
        link.open_link("lt-2")

        assert await link.dispatch(LinkEvent(type="exit", linkToken="lt-2")) is True
        on_exit.assert_awaited_once_with(None)

    @pytest.mark.asyncio
    async def test_missing_callback_is_fine(self):
        link = HostedLink(client_id="cid")
        link.open_link("lt-1")

        assert await link.dispatch(transfer_finished_event()) is True


class TestMalformedPayloads:
    @pytest.mark.asyncio
    async def test_null_account_tokens_accepted(self):
        on_connected = AsyncMock()
        link = HostedLink(client_id="cid", on_integration_connected=on_connected)
        link.open_link("lt-1")

        event = LinkEvent(
            type="integrationConnected",
            payload={"accessToken": {"accountTokens": None}},
        )

        assert await link.dispatch(event) is True
        payload = on_connected.await_args.args[0]
        assert payload.access_token.account_tokens is None

    @pytest.mark.asyncio
    async def test_invalid_connected_payload_becomes_empty(self):
        on_connected = AsyncMock()
        link = HostedLink(client_id="cid", on_integration_connected=on_connected)
        link.open_link("lt-1")

        event = LinkEvent(type="integrationConnected", payload={"accessToken": "oops"})

        assert await link.dispatch(event) is True
        payload = on_connected.await_args.args[0]
        assert payload.access_token is None

    @pytest.mark.asyncio
    async def test_numeric_tx_id_coerced(self):
        on_finished = MagicMock()
        link = HostedLink(client_id="cid", on_transfer_finished=on_finished)
        link.open_link("lt-1")

        await link.dispatch(LinkEvent(type="transferFinished", payload={"txId": 12345, "amount": 10}))

        payload = on_finished.call_args.args[0]
        assert payload.tx_id == "12345"
        assert payload.amount == 10

    @pytest.mark.asyncio
    async def test_invalid_transfer_payload_still_delivered(self):
        on_finished = MagicMock()
        link = HostedLink(client_id="cid", on_transfer_finished=on_finished)
        link.open_link("lt-1")

        event = LinkEvent(type="transferFinished", payload={"amount": "lots", "txId": "tx-1"})

        assert await link.dispatch(event) is True
        payload = on_finished.call_args.args[0]
        assert payload == TransferFinishedPayload()
