"""Handles to devices living on the remote hub."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from remotebridge.errors import StaleDeviceError

if TYPE_CHECKING:
    from .session import RemoteSession

logger = logging.getLogger(__name__)


@dataclass
class EventDetails:
    """Describes one event fired by a remote device."""
    interface: str
    property: str | None = None
    event_time: float = field(default_factory=time.time)


EventCallback = Callable[[EventDetails, Any], Any]


class ListenerRegistration:
    """Returned by :meth:`RemoteDevice.listen`; call :meth:`remove` to unsubscribe."""

    def __init__(self, remove: Callable[[], None]) -> None:
        self._remove = remove
        self.removed = False

    def remove(self) -> None:
        if self.removed:
            return
        self._remove()
        self.removed = True


class RemoteDevice:
    """Handle to a device in the remote registry.

    Reads go to the owning session's system state snapshot. Any read raises
    :class:`StaleDeviceError` once the session is closed or the device is
    gone from the snapshot (or the hub only half-describes it, with no
    interface list).
    """

    def __init__(self, session: RemoteSession, device_id: str) -> None:
        self._session = session
        self.id = device_id

    def __repr__(self) -> str:
        return f"<RemoteDevice {self.id}>"

    # ------------------------------------------------------------------ #
    # State access
    # ------------------------------------------------------------------ #

    def _entry(self) -> dict:
        if self._session.closed:
            raise StaleDeviceError(f"Session closed, device {self.id} is no longer reachable")
        entry = self._session.get_system_state().get(self.id)
        if not isinstance(entry, dict) or "interfaces" not in entry:
            raise StaleDeviceError(f"Remote device {self.id} is not accessible")
        return entry

    def get_property(self, name: str) -> Any:
        """Return the current value of property *name* (``None`` if unset)."""
        slot = self._entry().get(name)
        if isinstance(slot, dict):
            return slot.get("value")
        return slot

    @property
    def native_id(self) -> str | None:
        return self.get_property("nativeId")

    @property
    def name(self) -> str:
        return self.get_property("name") or self.id

    @property
    def type(self) -> str | None:
        return self.get_property("type")

    @property
    def interfaces(self) -> list[str]:
        return list(self.get_property("interfaces") or [])

    @property
    def info(self) -> dict[str, Any]:
        return dict(self.get_property("info") or {})

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def listen(self, interface: str, callback: EventCallback) -> ListenerRegistration:
        """Subscribe *callback* to events for *interface* on this device."""
        return self._session.add_listener(self.id, str(interface), callback)

    # ------------------------------------------------------------------ #
    # Methods
    # ------------------------------------------------------------------ #

    async def call(self, method: str, *args: Any) -> Any:
        """Invoke a remote method on this device."""
        self._entry()
        return await self._session.client.call_method(self.id, method, list(args))

    async def get_video_stream(self, options: dict | None = None) -> Any:
        return await self.call("getVideoStream", options)

    async def get_video_stream_options(self) -> Any:
        return await self.call("getVideoStreamOptions")

    async def take_picture(self, options: dict | None = None) -> Any:
        return await self.call("takePicture", options)

    async def start_rtc_signaling_session(self, session: Any) -> Any:
        return await self.call("startRTCSignalingSession", session)
