"""Pytest configuration and fixtures."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from api.helpers import get_link_service
from config import Settings
from integrations.account_registry import ConnectedAccountRegistry
from main import app
from services.link_service import LinkService
from services.link_token_cache import LinkTokenCache
from tests.fixtures.mocks import (
    CREDENTIALS,
    SAMPLE_HOLDINGS,
    MockMeshClient,
    RecordingLinkFactory,
)


def _make_settings(**overrides) -> Settings:
    """Settings isolated from the shell environment and the keychain."""
    values = {
        "MESH_CLIENT_ID": CREDENTIALS["client_id"],
        "MESH_CLIENT_SECRET": CREDENTIALS["client_secret"],
        "MESH_USER_ID": CREDENTIALS["user_id"],
        "METAMASK_NETWORK_ID": "eth-mainnet",
        "BINANCE_NETWORK_ID": "eth-mainnet",
        "TRANSFER_SYMBOL": "USDC",
        "LINK_TOKEN_CACHE_PATH": "",
    }
    values.update(overrides)
    with patch("config.get_credential", return_value=None):
        return Settings(_env_file=None, **values)


@pytest.fixture(name="test_settings")
def test_settings_fixture():
    return _make_settings()


@pytest.fixture(name="mock_gateway")
def mock_gateway_fixture():
    """Mock Mesh gateway with one ETH position and a resolved address."""
    return MockMeshClient(holdings=SAMPLE_HOLDINGS)


@pytest.fixture(name="link_factory")
def link_factory_fixture():
    return RecordingLinkFactory()


@pytest.fixture(name="registry")
def registry_fixture():
    return ConnectedAccountRegistry()


@pytest.fixture(name="link_service")
def link_service_fixture(mock_gateway, registry, link_factory, test_settings):
    return LinkService(
        gateway=mock_gateway,
        registry=registry,
        link_factory=link_factory,
        token_cache=LinkTokenCache(),
        config=test_settings,
    )


@pytest.fixture(name="client")
def client_fixture(link_service):
    """Create a test client backed by a mocked link service."""
    app.dependency_overrides[get_link_service] = lambda: link_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="unconfigured_client")
def unconfigured_client_fixture(mock_gateway, link_factory):
    """Create a test client whose link service has no Mesh credentials."""
    service = LinkService(
        gateway=mock_gateway,
        link_factory=link_factory,
        token_cache=LinkTokenCache(),
        config=_make_settings(MESH_CLIENT_ID="", MESH_CLIENT_SECRET="", MESH_USER_ID=""),
    )
    app.dependency_overrides[get_link_service] = lambda: service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
