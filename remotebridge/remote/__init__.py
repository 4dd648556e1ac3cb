"""Remote hub client: REST calls, event stream, sessions and device handles."""

from __future__ import annotations

from .client import RemoteAuthError, RemoteClientError, RemoteConnectionError, RemoteHubClient
from .device import EventDetails, ListenerRegistration, RemoteDevice
from .session import RemoteSession, connect

__all__ = [
    "EventDetails",
    "ListenerRegistration",
    "RemoteAuthError",
    "RemoteClientError",
    "RemoteConnectionError",
    "RemoteDevice",
    "RemoteHubClient",
    "RemoteSession",
    "connect",
]
