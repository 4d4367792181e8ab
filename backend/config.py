"""Application configuration using pydantic-settings."""

from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load credential fields from the system keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Mesh credentials (required for every credential-gated operation)
    MESH_CLIENT_ID: str = ""
    MESH_CLIENT_SECRET: str = ""
    MESH_USER_ID: str = ""

    # Mesh API
    MESH_API_BASE_URL: str = "https://integration-api.meshconnect.com/api/v1"
    MESH_REQUEST_TIMEOUT: float = 30.0

    # Wallet provider (transfer source)
    METAMASK_INTEGRATION_ID: str = "metamask"
    METAMASK_NETWORK_ID: str = ""

    # Exchange provider (transfer destination)
    BINANCE_INTEGRATION_ID: str = "binance"
    BINANCE_NETWORK_ID: str = ""

    # Asset moved by transfer sessions and resolved for deposit addresses
    TRANSFER_SYMBOL: str = "USDC"

    # Non-authoritative link token cache; empty disables it
    LINK_TOKEN_CACHE_PATH: str = ""

    # Frontend origins allowed to call the API
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @property
    def cors_origins(self) -> list[str]:
        """CORS_ORIGINS split into a list, blanks dropped."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def has_mesh_credentials(self) -> bool:
        """True when client id, client secret and user id are all set."""
        return bool(self.MESH_CLIENT_ID and self.MESH_CLIENT_SECRET and self.MESH_USER_ID)

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
