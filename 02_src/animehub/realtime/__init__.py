"""Realtime module."""

from .broadcaster import Broadcaster, ConnectionState, IConnection

__all__ = ["Broadcaster", "ConnectionState", "IConnection"]
