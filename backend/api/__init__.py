"""API route handlers."""
from . import connectors, transfers

__all__ = ["connectors", "transfers"]
