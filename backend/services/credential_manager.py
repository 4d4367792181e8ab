"""Mesh client credentials in the system keychain.

The keychain holds the three values every Mesh request is signed with:
``MESH_CLIENT_ID``, ``MESH_CLIENT_SECRET`` and ``MESH_USER_ID``. They are
read per key by :class:`config.KeychainSettingsSource` and as a set by
``scripts/setup_mesh.py``.

``keyring`` is imported lazily; when it is missing or has no usable
backend every read returns ``None`` and every write reports failure.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SERVICE_NAME = "mesh-bridge"

# Keychain key for each MeshCredentials field, in prompt order
MESH_CREDENTIAL_FIELDS: dict[str, str] = {
    "client_id": "MESH_CLIENT_ID",
    "client_secret": "MESH_CLIENT_SECRET",
    "user_id": "MESH_USER_ID",
}

CREDENTIAL_KEYS: frozenset[str] = frozenset(MESH_CREDENTIAL_FIELDS.values())


def _keyring():
    try:
        import keyring
    except ImportError:
        return None
    return keyring


@dataclass(frozen=True)
class MeshCredentials:
    """The credential set one Mesh deployment runs with."""

    client_id: str = ""
    client_secret: str = ""
    user_id: str = ""

    @property
    def missing_keys(self) -> list[str]:
        """Keychain keys whose value is blank."""
        return [key for name, key in MESH_CREDENTIAL_FIELDS.items() if not getattr(self, name)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_keys


def get_credential(key: str) -> Optional[str]:
    """Return the keychain value for ``key``, or ``None``."""
    keyring = _keyring()
    if keyring is None:
        return None
    try:
        return keyring.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def load_mesh_credentials(
    lookup: Callable[[str], Optional[str]] = get_credential,
) -> MeshCredentials:
    """Read the Mesh credential set.

    Args:
        lookup: Resolves one key to its value. Defaults to the keychain;
            the setup script passes one that checks the environment first.
    """
    values = {}
    for name, key in MESH_CREDENTIAL_FIELDS.items():
        values[name] = (lookup(key) or "").strip()
    return MeshCredentials(**values)


def set_credential(key: str, value: str) -> bool:
    """Store one Mesh credential. Returns ``True`` on success.

    Unknown keys and blank values are refused.
    """
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to store non-credential key: %s", key)
        return False
    if not value or not value.strip():
        logger.warning("Attempted to store empty value for %s", key)
        return False

    keyring = _keyring()
    if keyring is None:
        logger.warning("keyring is not installed, cannot store credentials")
        return False
    try:
        keyring.set_password(SERVICE_NAME, key, value.strip())
    except Exception:
        logger.warning("Failed to store %s in keychain", key, exc_info=True)
        return False
    logger.info("Stored %s in keychain", key)
    return True


def delete_credential(key: str) -> bool:
    """Remove one Mesh credential. Returns ``True`` if it was deleted."""
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to delete non-credential key: %s", key)
        return False

    keyring = _keyring()
    if keyring is None:
        return False
    try:
        keyring.delete_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Failed to delete %s from keychain", key, exc_info=True)
        return False
    logger.info("Deleted %s from keychain", key)
    return True


def clear_mesh_credentials() -> list[str]:
    """Delete the whole Mesh credential set. Returns the keys removed."""
    return [key for key in MESH_CREDENTIAL_FIELDS.values() if delete_credential(key)]
