"""Remote bridge — session, discovery and wiring for one remote hub.

Lifecycle::

    UNCONFIGURED → AUTHENTICATING → DISCOVERING → READY

A failed login or discovery pass drops back to ``UNCONFIGURED`` with no
session. Changing any
credential setting, in any state, starts over at ``AUTHENTICATING``.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable

from remotebridge.discovery import DeviceDescriptor, DeviceRegistry, DiscoveryResult, discover_all
from remotebridge.errors import ConfigurationError, UnknownDeviceError
from remotebridge.host import DeviceManager
from remotebridge.remote.client import RemoteClientError
from remotebridge.remote.device import RemoteDevice
from remotebridge.remote.session import RemoteSession, connect
from remotebridge.settings import Credentials, Setting, StorageSettings
from remotebridge.wiring import ProxyWiring

logger = logging.getLogger(__name__)

Connector = Callable[[Credentials], Awaitable[RemoteSession]]


class BridgeState(str, enum.Enum):
    UNCONFIGURED = "unconfigured"
    AUTHENTICATING = "authenticating"
    DISCOVERING = "discovering"
    READY = "ready"


async def _default_connector(credentials: Credentials) -> RemoteSession:
    return await connect(credentials.base_url, credentials.username, credentials.password)


class RemoteBridge:
    """Imports devices from a remote hub into the host's device manager.

    Args:
        manager:   Host device manager that receives devices, state and events.
        settings:  Credential settings; a change hook is installed on it.
        connector: Coroutine that opens a :class:`RemoteSession` from
                   credentials (defaults to :func:`remotebridge.remote.connect`).
    """

    def __init__(
        self,
        manager: DeviceManager,
        settings: StorageSettings | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.manager = manager
        self.settings = settings or StorageSettings()
        self.settings.on_put = self._on_setting_changed
        self.registry = DeviceRegistry()
        self.wiring = ProxyWiring(manager)
        self.session: RemoteSession | None = None
        self.state = BridgeState.UNCONFIGURED
        self.last_result: DiscoveryResult | None = None
        self._connector = connector or _default_connector

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Startup trigger: log in and discover if credentials are set.

        Startup never raises for a bad or missing configuration; the error is
        logged and the bridge waits for the next settings change.
        """
        try:
            await self.clear_try_discover_devices()
        except (ConfigurationError, RemoteClientError) as exc:
            logger.warning("Remote bridge not started: %s", exc)

    async def close(self) -> None:
        await self._drop_session()
        self.state = BridgeState.UNCONFIGURED

    async def clear_try_discover_devices(self) -> DiscoveryResult:
        """Log in again from scratch, then run a discovery pass."""
        await self.try_login()
        return await self.discover_devices()

    async def try_login(self) -> RemoteSession:
        """Replace the current session with a fresh one.

        Raises :class:`ConfigurationError` before any network call if a
        credential is missing, or the client's :class:`RemoteClientError` if
        the hub cannot be reached or rejects the login.
        """
        await self._drop_session()
        self.state = BridgeState.AUTHENTICATING

        credentials = self.settings.credentials()
        if not credentials.is_complete():
            self.state = BridgeState.UNCONFIGURED
            raise ConfigurationError(
                "Initializing remote login requires the base URL, username, and password"
            )

        try:
            session = await self._connector(credentials)
        except Exception as exc:
            self.state = BridgeState.UNCONFIGURED
            logger.error("Remote login to %s failed: %s", credentials.base_url, exc)
            raise

        self.session = session
        logger.info(
            "Connected to remote hub. Remote server version: %s", session.server_version
        )
        await session.start_events()
        return session

    async def discover_devices(self) -> DiscoveryResult:
        """Run a discovery pass on the current session (no-op without one).

        If the pass fails (e.g. the host rejects the batch) the session is
        dropped and the bridge is back to ``UNCONFIGURED``.
        """
        if self.session is None:
            return DiscoveryResult()

        self.state = BridgeState.DISCOVERING
        try:
            result = await discover_all(self.session, self.registry, self.manager, self.wiring)
        except Exception:
            logger.exception("Discovery pass failed")
            await self._drop_session()
            self.state = BridgeState.UNCONFIGURED
            raise
        self.last_result = result
        self.state = BridgeState.READY
        return result

    # ------------------------------------------------------------------ #
    # Device provider
    # ------------------------------------------------------------------ #

    async def get_device(self, native_id: str) -> RemoteDevice:
        """Return the wired remote handle the host talks to for *native_id*."""
        handle = self.registry.get(native_id)
        if handle is None:
            raise UnknownDeviceError(f"{native_id} does not exist")
        return handle

    async def release_device(self, id: str, native_id: str) -> None:
        """Host released the device; forget it and stop forwarding its events."""
        self.wiring.unwire(native_id)
        if self.registry.release(native_id):
            logger.info("Released device %s (%s)", native_id, id)

    def devices(self) -> list[DeviceDescriptor]:
        return self.registry.descriptors()

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #

    async def get_settings(self) -> list[Setting]:
        return await self.settings.get_settings()

    async def put_setting(self, key: str, value: Any) -> None:
        await self.settings.put_setting(key, value)

    async def _on_setting_changed(self, key: str, value: Any) -> None:
        await self.clear_try_discover_devices()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _drop_session(self) -> None:
        # Listeners belong to the old session; registry entries stay until
        # the next successful pass or an explicit release.
        self.wiring.unwire_all()
        session, self.session = self.session, None
        if session is not None:
            await session.close()
