"""Mesh integration API client.

Issues the three outbound calls the link flow needs (create link token,
get holdings, get managed deposit address). All calls share the
credential headers and the error-decoding policy defined here; this is
the only place HTTP failure text is interpreted.
"""

import json
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from config import settings
from integrations.exceptions import (
    ConfigurationError,
    ProviderAPIError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.provider_protocol import HoldingsResult
from schemas.mesh import HoldingPosition, LinkTokenRequest, LinkTokenResponse

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Mesh"

LINK_TOKEN_PATH = "/linktoken"
HOLDINGS_PATH = "/holdings/get"
MANAGED_ADDRESS_PATH = "/transfers/managed/address/get"

MISSING_CREDENTIALS_MESSAGE = (
    "Mesh credentials are not configured. Please set the required environment variables."
)

# Error-object fields checked, in order, when decoding a failed link-token call.
_ERROR_MESSAGE_FIELDS = ("message", "error", "errorMessage")


def decode_error_message(body: str, status_code: int, session_label: str = "Mesh session") -> str:
    """Turn a failed link-token response body into a displayable message.

    Prefers the first non-blank ``message``/``error``/``errorMessage``
    string of a JSON error object, then the raw body, then a generic
    status message.
    """
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        for key in _ERROR_MESSAGE_FIELDS:
            candidate = parsed.get(key)
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()

    if body:
        return body
    return f"Unable to start {session_label} (status {status_code})."


def _combine_positions(content: dict[str, Any]) -> list[HoldingPosition]:
    """Crypto positions then equity positions, non-object entries dropped."""
    combined: list[HoldingPosition] = []
    for key in ("cryptocurrencyPositions", "equityPositions"):
        for entry in content.get(key) or []:
            if not isinstance(entry, dict):
                continue
            combined.append(HoldingPosition.model_validate(entry))
    return combined


class MeshClient:
    """Async client for the Mesh integration API.

    Implements the MeshGateway protocol. Holds one ``httpx.AsyncClient``
    for its lifetime; call :meth:`close` on shutdown.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = settings.MESH_CLIENT_ID if client_id is None else client_id
        self._client_secret = (
            settings.MESH_CLIENT_SECRET if client_secret is None else client_secret
        )
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.MESH_API_BASE_URL,
            timeout=timeout or settings.MESH_REQUEST_TIMEOUT,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    def is_configured(self) -> bool:
        """Check if the client id and secret are configured."""
        return bool(self._client_id) and bool(self._client_secret)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _check_credentials(self) -> None:
        """Raise ConfigurationError if the client id or secret is missing."""
        if not self.is_configured():
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE, provider_name=PROVIDER_NAME)

    def _headers(self) -> dict[str, str]:
        """Credential headers shared by every call."""
        self._check_credentials()
        return {
            "Content-Type": "application/json",
            "X-Client-Id": self._client_id,
            "X-Client-Secret": self._client_secret,
        }

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        headers = self._headers()
        # Absent optional fields are omitted rather than sent as null
        payload = {key: value for key, value in body.items() if value is not None}
        try:
            return await self._client.post(path, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"Mesh connection failed: {exc}",
                provider_name=PROVIDER_NAME,
            ) from exc

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderDataError(
                f"Mesh returned malformed JSON for {response.request.url.path}",
                provider_name=PROVIDER_NAME,
            ) from exc
        if not isinstance(data, dict):
            raise ProviderDataError(
                f"Mesh returned an unexpected payload for {response.request.url.path}",
                provider_name=PROVIDER_NAME,
            )
        return data

    # ------------------------------------------------------------------
    # Link token
    # ------------------------------------------------------------------

    async def create_link_token(self, request: LinkTokenRequest) -> str:
        """Create a Mesh link session.

        Args:
            request: The link configuration to POST.

        Returns:
            The link token to open in the widget.

        Raises:
            ConfigurationError: If credentials are not configured.
            ProviderAPIError: On a non-2xx response, with the decoded message.
            ProviderDataError: If the response carries no link token.
        """
        response = await self._post(LINK_TOKEN_PATH, request.to_wire())

        if not response.is_success:
            label = "transfer session" if request.transfer_options else "Mesh session"
            message = decode_error_message(response.text, response.status_code, label)
            raise ProviderAPIError(
                message,
                provider_name=PROVIDER_NAME,
                status_code=response.status_code,
            )

        data = LinkTokenResponse.model_validate(self._json(response))
        link_token = data.resolved_link_token()
        if not link_token:
            raise ProviderDataError(
                "Link token missing from response payload",
                provider_name=PROVIDER_NAME,
            )

        logger.info(
            "Mesh: link token created (integration=%s, expires=%s)",
            request.integration_id,
            data.expires_at or data.expiration or "unknown",
        )
        return link_token

    # ------------------------------------------------------------------
    # Holdings
    # ------------------------------------------------------------------

    async def get_holdings(
        self, auth_token: str, broker_type: Optional[str] = None
    ) -> HoldingsResult:
        """Fetch holdings for a connected account.

        Returns:
            HoldingsResult with crypto positions before equity positions,
            each list in upstream order.

        Raises:
            ConfigurationError: If credentials are not configured.
            ProviderAPIError: On a non-2xx response, carrying the body text.
        """
        response = await self._post(HOLDINGS_PATH, {"authToken": auth_token, "type": broker_type})

        if not response.is_success:
            raise ProviderAPIError(
                response.text or f"Holdings request failed ({response.status_code})",
                provider_name=PROVIDER_NAME,
                status_code=response.status_code,
            )

        content = self._json(response).get("content")
        if not isinstance(content, dict):
            content = {}
        try:
            positions = _combine_positions(content)
        except ValidationError as exc:
            raise ProviderDataError(
                f"Mesh returned malformed holdings: {exc}",
                provider_name=PROVIDER_NAME,
            ) from exc

        institution_name = content.get("institutionName") or None
        logger.debug("Mesh: fetched %d positions (%s)", len(positions), broker_type or "default")
        return HoldingsResult(positions=positions, institution_name=institution_name)

    # ------------------------------------------------------------------
    # Managed deposit address
    # ------------------------------------------------------------------

    async def get_managed_address(
        self,
        auth_token: str,
        broker_type: Optional[str] = None,
        network_id: Optional[str] = None,
        symbol: Optional[str] = None,
        cached_address: Optional[str] = None,
    ) -> Optional[str]:
        """Resolve the managed deposit address for a network/symbol pair.

        Without both ``network_id`` and ``symbol`` there is nothing to
        resolve: ``cached_address`` is returned and no request is made.

        Raises:
            ConfigurationError: If credentials are not configured.
            ProviderAPIError: On a non-2xx response, carrying the body text.
            ProviderDataError: If the response has no ``address``.
        """
        self._check_credentials()
        if not network_id or not symbol:
            return cached_address

        response = await self._post(
            MANAGED_ADDRESS_PATH,
            {
                "authToken": auth_token,
                "type": broker_type,
                "networkId": network_id,
                "symbol": symbol,
            },
        )

        if not response.is_success:
            raise ProviderAPIError(
                response.text or f"Managed address request failed ({response.status_code})",
                provider_name=PROVIDER_NAME,
                status_code=response.status_code,
            )

        content = self._json(response).get("content")
        address = content.get("address") if isinstance(content, dict) else None
        if not address:
            raise ProviderDataError(
                "Managed address missing from response payload",
                provider_name=PROVIDER_NAME,
            )

        logger.info("Mesh: managed address resolved for %s/%s", network_id, symbol)
        return address
