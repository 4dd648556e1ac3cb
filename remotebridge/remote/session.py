"""Authenticated session with the remote hub."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

import httpx

from .client import RemoteHubClient
from .device import EventCallback, EventDetails, ListenerRegistration, RemoteDevice
from .websocket import RemoteEventStream

logger = logging.getLogger(__name__)


class RemoteSession:
    """Live connection to the remote registry.

    Holds the system state snapshot (``device id → {property: {"value": v}}``),
    hands out :class:`RemoteDevice` handles and routes incoming events to the
    listeners registered on those handles.
    """

    def __init__(
        self,
        client: RemoteHubClient,
        state: dict[str, dict],
        server_version: str = "unknown",
        events: RemoteEventStream | None = None,
    ) -> None:
        self.client = client
        self.server_version = server_version
        self.closed = False
        self._state = state
        self._events = events
        self._devices: dict[str, RemoteDevice] = {}
        self._listeners: dict[tuple[str, str], list[EventCallback]] = defaultdict(list)
        if events is not None:
            events.on_event(self.dispatch_event)

    def get_system_state(self) -> dict[str, dict]:
        """Return the current system state snapshot."""
        return self._state

    async def refresh_state(self) -> dict[str, dict]:
        """Re-fetch the snapshot from the hub."""
        self._state = await self.client.get_system_state()
        return self._state

    def get_device_by_id(self, device_id: str) -> RemoteDevice:
        """Return the handle for *device_id* (one handle per id per session)."""
        device = self._devices.get(device_id)
        if device is None:
            device = RemoteDevice(self, device_id)
            self._devices[device_id] = device
        return device

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def add_listener(
        self, device_id: str, interface: str, callback: EventCallback
    ) -> ListenerRegistration:
        key = (device_id, interface)
        self._listeners[key].append(callback)

        def _remove() -> None:
            callbacks = self._listeners.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return ListenerRegistration(_remove)

    def listener_count(self, device_id: str, interface: str) -> int:
        return len(self._listeners.get((device_id, interface), []))

    def dispatch_event(self, event: dict) -> None:
        """Apply one event from the hub and fan it out to listeners.

        *event* carries ``id``, ``interface``, optional ``property``,
        ``value`` and ``eventTime``.
        """
        device_id: str = event["id"]
        interface: str = event["interface"]
        prop: str | None = event.get("property")
        value: Any = event.get("value")

        if prop and device_id in self._state:
            self._state[device_id][prop] = {"value": value}

        details = EventDetails(interface=interface, property=prop)
        if event.get("eventTime") is not None:
            details.event_time = event["eventTime"]

        for cb in list(self._listeners.get((device_id, interface), [])):
            try:
                cb(details, value)
            except Exception:  # noqa: BLE001
                logger.exception("Error forwarding %s event for %s", interface, device_id)

    async def start_events(self) -> None:
        """Start the event stream, if the session has one."""
        if self._events is not None:
            await self._events.start()

    async def close(self) -> None:
        """Tear the session down. Device handles become stale."""
        if self.closed:
            return
        self.closed = True
        self._listeners.clear()
        try:
            if self._events is not None:
                await self._events.stop()
        finally:
            await self.client.aclose()


async def connect(
    base_url: str,
    username: str,
    password: str,
    *,
    verify_tls: bool = False,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
    with_events: bool = True,
) -> RemoteSession:
    """Log in to the remote hub and return a live :class:`RemoteSession`.

    Raises :class:`~remotebridge.remote.client.RemoteClientError` subclasses
    on auth or transport failure.
    """
    client = RemoteHubClient(base_url, timeout=timeout, verify_tls=verify_tls, transport=transport)
    try:
        login = await client.login(username, password)
        state = await client.get_system_state()
    except Exception:
        await client.aclose()
        raise

    events = None
    if with_events:
        events = RemoteEventStream(base_url, client.token or "", verify_tls=verify_tls)
    return RemoteSession(
        client,
        state,
        server_version=str(login.get("serverVersion", "unknown")),
        events=events,
    )
