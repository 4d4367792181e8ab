"""Backend handle for a browser-hosted Mesh Link widget session.

The widget runs in the user's browser. The backend only knows it through
this handle: ``open_link`` records the link token the browser should open,
``close_link`` ends the session, and ``dispatch`` routes the widget's
callback events (posted back over HTTP) to the registered callbacks.

Events that arrive after the handle is closed, or that name a link token
other than the one currently open, are ignored.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from pydantic import ValidationError

from integrations.exceptions import WidgetError
from schemas.mesh import (
    IntegrationAccessToken,
    LinkEvent,
    LinkPayload,
    TransferFinishedPayload,
)

logger = logging.getLogger(__name__)

ConnectedCallback = Callable[[LinkPayload], Union[None, Awaitable[None]]]
TransferFinishedCallback = Callable[[TransferFinishedPayload], Union[None, Awaitable[None]]]
ExitCallback = Callable[[Optional[str]], Union[None, Awaitable[None]]]
PayloadT = TypeVar("PayloadT", LinkPayload, TransferFinishedPayload)


async def _invoke(callback: Optional[Callable[..., Any]], argument: Any) -> None:
    if callback is None:
        return
    result = callback(argument)
    if inspect.isawaitable(result):
        await result


def _parse_payload(model: type[PayloadT], event: LinkEvent) -> PayloadT:
    """Validate an event payload. A malformed payload becomes an empty one."""
    try:
        return model.model_validate(event.payload or {})
    except ValidationError as exc:
        logger.warning(
            "Malformed Mesh Link %s payload (%d errors), treating it as empty",
            event.type,
            exc.error_count(),
        )
        return model()


class HostedLink:
    """One widget handle. Supports a single open session at a time."""

    def __init__(
        self,
        client_id: str,
        on_integration_connected: Optional[ConnectedCallback] = None,
        on_transfer_finished: Optional[TransferFinishedCallback] = None,
        on_exit: Optional[ExitCallback] = None,
        access_tokens: Optional[list[IntegrationAccessToken]] = None,
        transfer_destination_tokens: Optional[list[IntegrationAccessToken]] = None,
    ):
        self.client_id = client_id
        self.access_tokens = list(access_tokens or [])
        self.transfer_destination_tokens = list(transfer_destination_tokens or [])
        self._on_integration_connected = on_integration_connected
        self._on_transfer_finished = on_transfer_finished
        self._on_exit = on_exit
        self._link_token: str | None = None

    @property
    def link_token(self) -> str | None:
        """Token of the open session, or None when closed."""
        return self._link_token

    @property
    def is_open(self) -> bool:
        return self._link_token is not None

    def open_link(self, link_token: str) -> None:
        """Open a session for ``link_token``.

        Raises:
            WidgetError: If a session is already open on this handle.
        """
        if not link_token:
            raise WidgetError("Cannot open Mesh Link without a link token")
        if self._link_token is not None:
            raise WidgetError("A Mesh Link session is already open on this handle")
        self._link_token = link_token
        logger.debug("Mesh Link opened (client_id=%s)", self.client_id)

    def close_link(self) -> None:
        """Close the open session, if any. Idempotent."""
        if self._link_token is not None:
            logger.debug("Mesh Link closed (client_id=%s)", self.client_id)
        self._link_token = None

    async def dispatch(self, event: LinkEvent) -> bool:
        """Deliver a widget event to its callback.

        Returns:
            True if the event was applied, False if it was ignored because
            the session is closed or belongs to another link token.
        """
        if self._link_token is None:
            logger.info("Ignoring Mesh Link %s event: no open session", event.type)
            return False
        if event.link_token and event.link_token != self._link_token:
            logger.info("Ignoring Mesh Link %s event for a stale session", event.type)
            return False

        if event.type == "integrationConnected":
            payload = _parse_payload(LinkPayload, event)
            await _invoke(self._on_integration_connected, payload)
        elif event.type == "transferFinished":
            payload = _parse_payload(TransferFinishedPayload, event)
            await _invoke(self._on_transfer_finished, payload)
        else:
            await _invoke(self._on_exit, event.error)
        return True


LinkFactory = Callable[..., HostedLink]


def create_link(**kwargs: Any) -> HostedLink:
    """Create a widget handle. Matches the :data:`LinkFactory` signature."""
    return HostedLink(**kwargs)
