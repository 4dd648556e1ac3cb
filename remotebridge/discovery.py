"""Device discovery: decide which remote devices get imported.

A discovery pass walks the session's system state snapshot, drops devices
that cannot be reached or expose no allow-listed capability, registers the
survivors, wires them, and hands the whole batch to the host in one call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from remotebridge.capabilities import intersect_allowed
from remotebridge.errors import StaleDeviceError
from remotebridge.host import DeviceManager
from remotebridge.remote.device import RemoteDevice
from remotebridge.remote.session import RemoteSession
from remotebridge.wiring import ProxyWiring

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceDescriptor:
    """Local, pruned description of a remote device."""
    native_id: str
    name: str
    type: str | None
    interfaces: tuple[str, ...]
    info: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nativeId": self.native_id,
            "name": self.name,
            "type": self.type,
            "interfaces": list(self.interfaces),
            "info": dict(self.info),
        }


class DeviceRegistry:
    """Currently imported devices: native id → remote handle.

    Only the discovery flow writes entries; the host removes them through
    :meth:`release`.
    """

    def __init__(self) -> None:
        self._handles: dict[str, RemoteDevice] = {}
        self._descriptors: dict[str, DeviceDescriptor] = {}

    def __contains__(self, native_id: object) -> bool:
        return native_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def ids(self) -> list[str]:
        return list(self._handles)

    def register(self, descriptor: DeviceDescriptor, handle: RemoteDevice) -> None:
        """Insert or overwrite the entry for ``descriptor.native_id``."""
        self._handles[descriptor.native_id] = handle
        self._descriptors[descriptor.native_id] = descriptor

    def get(self, native_id: str) -> RemoteDevice | None:
        return self._handles.get(native_id)

    def descriptor(self, native_id: str) -> DeviceDescriptor | None:
        return self._descriptors.get(native_id)

    def descriptors(self) -> list[DeviceDescriptor]:
        return list(self._descriptors.values())

    def release(self, native_id: str) -> bool:
        """Drop *native_id*; returns ``False`` if it was not registered."""
        self._descriptors.pop(native_id, None)
        return self._handles.pop(native_id, None) is not None

    def retain_only(self, native_ids: Iterable[str]) -> list[str]:
        """Drop every entry not in *native_ids*; return the dropped ids."""
        keep = set(native_ids)
        removed = [nid for nid in self._handles if nid not in keep]
        for nid in removed:
            self.release(nid)
        return removed


@dataclass
class DiscoveryResult:
    """Outcome of one discovery pass."""
    descriptors: list[DeviceDescriptor] = field(default_factory=list)
    skipped_stale: list[str] = field(default_factory=list)
    skipped_unsupported: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.descriptors)


def filter_and_describe(handle: RemoteDevice) -> DeviceDescriptor | None:
    """Return the pruned descriptor for *handle*, or ``None`` if unsupported.

    Raises :class:`StaleDeviceError` if the device cannot be accessed; that
    check runs before any filtering.
    """
    handle.native_id  # access check

    interfaces = intersect_allowed(handle.interfaces)
    if not interfaces:
        return None
    return DeviceDescriptor(
        native_id=handle.id,
        name=handle.name,
        type=handle.type,
        interfaces=tuple(interfaces),
        info=handle.info,
    )


async def discover_all(
    session: RemoteSession,
    registry: DeviceRegistry,
    manager: DeviceManager,
    wiring: ProxyWiring | None = None,
) -> DiscoveryResult:
    """Run one full discovery pass and notify *manager* with the batch.

    Entries for devices that vanished from the snapshot are dropped from the
    registry (and unwired) so the registry always mirrors the last batch.
    """
    result = DiscoveryResult()
    survivors: list[tuple[DeviceDescriptor, RemoteDevice]] = []

    for device_id in list(session.get_system_state()):
        handle = session.get_device_by_id(device_id)
        try:
            descriptor = filter_and_describe(handle)
        except StaleDeviceError:
            logger.info("Cannot access remote device %s, ignoring", device_id)
            result.skipped_stale.append(device_id)
            continue

        if descriptor is None:
            logger.info("Device %s is not supported, ignoring", handle.name)
            result.skipped_unsupported.append(device_id)
            continue

        logger.info("Found %s", descriptor.name)
        logger.debug("%s", json.dumps(descriptor.to_dict(), indent=2, default=str))
        survivors.append((descriptor, handle))

    result.descriptors = [d for d, _ in survivors]

    newly_wired: list[str] = []
    if wiring is not None:
        for descriptor, handle in survivors:
            if wiring.wire(descriptor, handle):
                newly_wired.append(descriptor.native_id)

    try:
        await manager.on_devices_changed(list(result.descriptors))
    except Exception:
        # The registry only holds devices the host has accepted.
        if wiring is not None:
            for native_id in newly_wired:
                wiring.unwire(native_id)
        raise

    for descriptor, handle in survivors:
        registry.register(descriptor, handle)
    result.removed = registry.retain_only(d.native_id for d, _ in survivors)
    if wiring is not None:
        for native_id in result.removed:
            wiring.unwire(native_id)

    logger.info("Discovered %d devices", result.count)
    return result
