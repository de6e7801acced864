"""Realtime transport for this process."""
from .connection_manager import ConnectionManager

__all__ = ["ConnectionManager"]
