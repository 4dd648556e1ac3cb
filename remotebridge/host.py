"""Host device manager interface.

The host hub receives the imported device list, per-device state writes and
forwarded device events through this interface. :class:`LocalDeviceManager`
is an in-memory implementation used by the CLI, the admin API and tests.
"""

from __future__ import annotations

import abc
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, MutableMapping

if TYPE_CHECKING:
    from remotebridge.discovery import DeviceDescriptor

logger = logging.getLogger(__name__)

DeviceState = MutableMapping[str, Any]


@dataclass
class DeviceEvent:
    """An event forwarded to the host without a state property."""
    native_id: str
    interface: str
    data: Any
    received_at: float = field(default_factory=time.time)


class DeviceManager(abc.ABC):
    """Abstract base class for the host hub's device manager."""

    @abc.abstractmethod
    async def on_devices_changed(self, devices: list[DeviceDescriptor]) -> None:
        """Replace the set of devices this bridge provides with *devices*."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_device_state(self, native_id: str) -> DeviceState:
        """Return the writable state slots for *native_id*."""
        raise NotImplementedError

    @abc.abstractmethod
    def on_device_event(self, native_id: str, interface: str, data: Any) -> None:
        """Dispatch a generic device event on the host."""
        raise NotImplementedError


class LocalDeviceManager(DeviceManager):
    """In-memory device manager.

    Args:
        max_events: How many forwarded events to keep (oldest dropped first).
    """

    def __init__(self, max_events: int = 1000) -> None:
        self.devices: dict[str, DeviceDescriptor] = {}
        self.states: dict[str, dict[str, Any]] = {}
        self.events: deque[DeviceEvent] = deque(maxlen=max_events)
        self.batches = 0

    async def on_devices_changed(self, devices: list[DeviceDescriptor]) -> None:
        self.devices = {d.native_id: d for d in devices}
        self.batches += 1
        logger.info("Host device list now has %d devices", len(self.devices))

    def get_device_state(self, native_id: str) -> DeviceState:
        return self.states.setdefault(native_id, {})

    def on_device_event(self, native_id: str, interface: str, data: Any) -> None:
        self.events.append(DeviceEvent(native_id, interface, data))
        logger.debug("Event %s on %s", interface, native_id)

    def events_for(self, native_id: str) -> list[DeviceEvent]:
        return [e for e in self.events if e.native_id == native_id]
