"""Forward remote device events into the host's device state.

For every imported capability the bridge subscribes to the remote device's
event stream. Events that name a property become state writes on the host
(last write wins); all other events are forwarded one-for-one as generic
device events. Capabilities whose state is not pushed at subscribe time are
seeded once from the remote's current value, and the video stream entry
point is wrapped so stream requests always ask for the external route.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from remotebridge.capabilities import CapabilitySpec, spec_for
from remotebridge.errors import StaleDeviceError
from remotebridge.host import DeviceManager
from remotebridge.remote.device import EventDetails, ListenerRegistration, RemoteDevice

if TYPE_CHECKING:
    from remotebridge.discovery import DeviceDescriptor

logger = logging.getLogger(__name__)

EXTERNAL_ROUTE = "external"


class ExternalRouteStream:
    """Stream-request wrapper that pins ``route="external"`` in the options.

    The caller's options mapping is copied, never mutated. The delegate's
    result is returned as is.
    """

    def __init__(self, delegate: Callable[..., Awaitable[Any]]) -> None:
        self.delegate = delegate

    async def __call__(self, options: dict | None = None, *args: Any, **kwargs: Any) -> Any:
        forwarded = dict(options) if options else {}
        forwarded["route"] = EXTERNAL_ROUTE
        return await self.delegate(forwarded, *args, **kwargs)


def force_external_route(handle: Any, method_name: str) -> bool:
    """Wrap ``handle.<method_name>`` in :class:`ExternalRouteStream`.

    Returns ``False`` (and changes nothing) when the method is missing or
    already wrapped.
    """
    current = getattr(handle, method_name, None)
    if current is None or isinstance(current, ExternalRouteStream):
        return False
    setattr(handle, method_name, ExternalRouteStream(current))
    return True


def restore_route(handle: Any, method_name: str) -> bool:
    """Undo :func:`force_external_route`; returns ``False`` if nothing was wrapped."""
    current = getattr(handle, method_name, None)
    if not isinstance(current, ExternalRouteStream):
        return False
    setattr(handle, method_name, current.delegate)
    return True


@dataclass
class _WiredDevice:
    handle: RemoteDevice
    registrations: list[ListenerRegistration] = field(default_factory=list)
    patched: list[str] = field(default_factory=list)


class ProxyWiring:
    """Owns the listener registrations of every wired device."""

    def __init__(self, manager: DeviceManager) -> None:
        self._manager = manager
        self._wired: dict[str, _WiredDevice] = {}

    def is_wired(self, native_id: str) -> bool:
        return native_id in self._wired

    def wire(self, descriptor: DeviceDescriptor, handle: RemoteDevice) -> bool:
        """Subscribe, seed and patch *handle* for *descriptor*.

        Wiring the same handle twice is a no-op and returns ``False``. Wiring
        a different handle for an already-wired id (e.g. after a new login)
        drops the old subscriptions first.
        """
        native_id = descriptor.native_id
        existing = self._wired.get(native_id)
        if existing is not None:
            if existing.handle is handle:
                logger.debug("%s already wired", native_id)
                return False
            self.unwire(native_id)

        wired = _WiredDevice(handle)
        for interface in descriptor.interfaces:
            wired.registrations.append(handle.listen(interface, self._forwarder(native_id)))
            spec = spec_for(interface)
            if spec is None:
                continue
            self._seed(native_id, handle, spec)
            if spec.stream_method and force_external_route(handle, spec.stream_method):
                wired.patched.append(spec.stream_method)
                logger.debug("%s: %s forced to the external route", native_id, spec.stream_method)

        self._wired[native_id] = wired
        logger.debug("Wired %s (%s)", native_id, ", ".join(descriptor.interfaces))
        return True

    def unwire(self, native_id: str) -> None:
        """Remove the listeners of *native_id* and unwrap its stream method."""
        wired = self._wired.pop(native_id, None)
        if wired is None:
            return
        for registration in wired.registrations:
            registration.remove()
        for method_name in wired.patched:
            restore_route(wired.handle, method_name)

    def unwire_all(self) -> None:
        for native_id in list(self._wired):
            self.unwire(native_id)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _forwarder(self, native_id: str) -> Callable[[EventDetails, Any], None]:
        manager = self._manager

        def forward(details: EventDetails, data: Any) -> None:
            if details.property:
                manager.get_device_state(native_id)[details.property] = data
                return
            manager.on_device_event(native_id, details.interface, data)

        return forward

    def _seed(self, native_id: str, handle: RemoteDevice, spec: CapabilitySpec) -> None:
        state = self._manager.get_device_state(native_id)
        for prop in spec.seeded:
            try:
                state[prop] = handle.get_property(prop)
            except StaleDeviceError as exc:
                logger.warning("Cannot seed %s on %s: %s", prop, native_id, exc)
                return
