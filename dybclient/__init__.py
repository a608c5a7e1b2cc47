"""
Remote control client for Dock Your Boat.

    from dybclient import DYBClient, EventType
"""

from .config import ClientConfig, ConfigError, load_config
from .connection import ConnectionState, DYBClient
from .events import EventBus, EventType, MessageDispatcher

__all__ = [
    "ClientConfig",
    "ConfigError",
    "ConnectionState",
    "DYBClient",
    "EventBus",
    "EventType",
    "MessageDispatcher",
    "load_config",
]
