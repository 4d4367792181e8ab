"""Best-effort durable cache of the latest link token per provider slot.

Non-authoritative: nothing in the link flow reads it back to make
decisions, and every storage failure is logged and swallowed.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

KEY_PREFIX = "mesh-link-token-"


class LinkTokenCache:
    """JSON-file key/value store. A cache without a path is disabled."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else None

    @property
    def enabled(self) -> bool:
        return self._path is not None

    def _read(self) -> dict[str, str]:
        if self._path is None or not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def store(self, slot: str, link_token: str) -> bool:
        """Persist ``link_token`` for ``slot``. Returns False on failure."""
        if self._path is None:
            return False
        try:
            data = self._read()
            data[KEY_PREFIX + slot] = link_token
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            return True
        except (OSError, ValueError):
            logger.warning("Failed to persist link token for %s", slot, exc_info=True)
            return False
