"""Typed exception hierarchy for provider and link-flow errors.

Provides structured exceptions for differentiated error handling
(configuration errors vs transient network errors vs data issues vs
user input problems).
"""


class ProviderError(Exception):
    """Base exception for all provider-related errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class ConfigurationError(ProviderError):
    """Required credential or environment value is missing.

    Raised before any I/O. Never retriable.
    """

    retriable = False


class ProviderConnectionError(ProviderError):
    """Network failures such as timeouts or refused connections.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or incomplete response from the provider."""

    pass


class SessionRequestError(ProviderError):
    """A link session could not be created or yielded no usable token."""

    pass


class DataFetchError(ProviderError):
    """Holdings or managed-address lookup failed after a connection.

    ``scope`` names the affected sub-view (``"holdings"`` or ``"address"``);
    the connection itself stays valid.
    """

    def __init__(self, message: str, provider_name: str = "", scope: str = "holdings"):
        self.scope = scope
        super().__init__(message, provider_name)


class TransferValidationError(ProviderError):
    """Transfer preconditions or the entered amount are not satisfied."""

    pass


class WidgetError(ProviderError):
    """The link widget exited with an error."""

    pass
