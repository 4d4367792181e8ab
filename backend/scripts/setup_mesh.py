#!/usr/bin/env python3
"""
Setup script for Mesh credentials.

Usage:
    1. Get a client id and secret from the Mesh dashboard
    2. Run: python -m scripts.setup_mesh store
       (prompts for MESH_CLIENT_ID, MESH_CLIENT_SECRET and MESH_USER_ID and
       stores them in the system keychain)
       or put them in backend/.env and run:
       python -m scripts.setup_mesh migrate [--clean]
    3. Run: python -m scripts.setup_mesh check
       (requests a throwaway link token to confirm the credentials work)
    4. Run: python -m scripts.setup_mesh clear  (to remove them again)
"""

import argparse
import asyncio
import getpass
import os
import re
import sys
from pathlib import Path

# Add backend to path so we can import from there
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import dotenv_values, load_dotenv

from integrations.exceptions import ProviderError
from integrations.mesh_client import MeshClient
from schemas.mesh import LinkTokenRequest
from services.credential_manager import (
    CREDENTIAL_KEYS,
    MESH_CREDENTIAL_FIELDS,
    MeshCredentials,
    clear_mesh_credentials,
    get_credential,
    load_mesh_credentials,
    set_credential,
)

DEFAULT_ENV_FILE = Path(__file__).parent.parent / ".env"


def _get_setting(key: str) -> str:
    """Look up a setting from env vars, .env file, or keychain."""
    value = os.environ.get(key)
    if value:
        return value
    return get_credential(key) or ""


def store_credentials() -> None:
    """Prompt for each Mesh credential and store it in the keychain."""
    stored = 0
    for key in MESH_CREDENTIAL_FIELDS.values():
        prompt = f"{key}: "
        value = getpass.getpass(prompt) if "SECRET" in key else input(prompt)
        value = value.strip()
        if not value:
            print(f"  Skipped {key}")
            continue
        if set_credential(key, value):
            print(f"  Stored {key} in keychain")
            stored += 1
        else:
            print(f"  Failed to store {key}")
    print(f"\n{stored} credential(s) stored.")


def migrate(env_path: Path, *, clean: bool = False) -> None:
    """Copy Mesh credentials from ``.env`` into the keychain.

    Args:
        env_path: Path to the ``.env`` file.
        clean: If ``True``, rewrite the ``.env`` file without the
            migrated credential lines.
    """
    if not env_path.exists():
        print(f"No .env file found at {env_path}")
        sys.exit(1)

    values = dotenv_values(env_path)

    migrated: list[str] = []
    skipped_empty: list[str] = []
    skipped_exists: list[str] = []
    failed: list[str] = []

    for key in sorted(CREDENTIAL_KEYS):
        value = values.get(key)
        if not value:
            skipped_empty.append(key)
            continue

        if get_credential(key) == value:
            skipped_exists.append(key)
            continue

        if set_credential(key, value):
            migrated.append(key)
        else:
            failed.append(key)

    print()
    print("=" * 60)
    print("Migration Summary")
    print("=" * 60)
    for title, marker, keys in (
        ("Stored in keychain", "+", migrated),
        ("Already in keychain", "=", skipped_exists),
        ("Skipped (empty/missing in .env)", "-", skipped_empty),
        ("Failed", "!", failed),
    ):
        if keys:
            print(f"\n  {title} ({len(keys)}):")
            for key in keys:
                print(f"    {marker} {key}")
    print()

    if clean and (migrated or skipped_exists):
        _clean_env_file(env_path, migrated + skipped_exists)
    elif clean:
        print("Nothing to clean from .env.")


def _clean_env_file(env_path: Path, keys_to_remove: list[str]) -> None:
    """Remove credential lines from .env, preserving everything else."""
    lines = env_path.read_text().splitlines(keepends=True)
    pattern = re.compile(
        r"^(" + "|".join(re.escape(k) for k in keys_to_remove) + r")\s*="
    )
    cleaned = [line for line in lines if not pattern.match(line)]
    env_path.write_text("".join(cleaned))
    print(f"Removed {len(keys_to_remove)} credential(s) from {env_path}")


async def _request_link_token(credentials: MeshCredentials, integration_id: str) -> str:
    client = MeshClient(
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
    )
    try:
        return await client.create_link_token(
            LinkTokenRequest(
                user_id=credentials.user_id,
                integration_id=integration_id,
            )
        )
    finally:
        await client.close()


def check_credentials(integration_id: str = "metamask") -> None:
    """Request a link token to confirm the configured credentials work."""
    load_dotenv(DEFAULT_ENV_FILE)

    credentials = load_mesh_credentials(_get_setting)
    if not credentials.is_complete:
        missing = ", ".join(credentials.missing_keys)
        print(f"Error: {missing} must be set in backend/.env or keychain")
        sys.exit(1)

    print(f"Requesting a link token for integration: {integration_id}")
    try:
        link_token = asyncio.run(_request_link_token(credentials, integration_id))
    except ProviderError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("SUCCESS! Mesh accepted the credentials.")
    print(f"Link token: {link_token[:8]}...")
    print("=" * 60 + "\n")


def clear_credentials() -> None:
    """Remove every Mesh credential from the keychain."""
    confirm = input("Remove Mesh credentials from keychain? [y/N] ").strip().lower()
    if confirm != "y":
        print("Aborted.")
        return
    deleted = clear_mesh_credentials()
    for key in MESH_CREDENTIAL_FIELDS.values():
        if key in deleted:
            print(f"  Deleted {key}")
        else:
            print(f"  {key} not in keychain")


def main():
    parser = argparse.ArgumentParser(description="Mesh credential setup utility")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("store", help="Prompt for credentials and store them in keychain")

    migrate_parser = subparsers.add_parser("migrate", help="Move credentials from .env to keychain")
    migrate_parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove migrated credentials from .env after storing in keychain",
    )
    migrate_parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="Path to .env file (default: backend/.env)",
    )

    check_parser = subparsers.add_parser("check", help="Verify credentials with a link token request")
    check_parser.add_argument(
        "--integration-id",
        default="metamask",
        help="Mesh integration id to request a session for (default: metamask)",
    )

    subparsers.add_parser("clear", help="Remove credentials from keychain")

    args = parser.parse_args()

    if args.command == "store":
        store_credentials()
    elif args.command == "migrate":
        migrate(args.env_file, clean=args.clean)
    elif args.command == "check":
        check_credentials(args.integration_id)
    elif args.command == "clear":
        clear_credentials()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
