"""Tests for RemoteBridge: login, discovery flow, device provider and settings."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from remotebridge.bridge import BridgeState, RemoteBridge
from remotebridge.errors import ConfigurationError, UnknownDeviceError
from remotebridge.host import LocalDeviceManager
from remotebridge.remote.client import RemoteAuthError, RemoteConnectionError
from remotebridge.settings import StorageSettings
from remotebridge.wiring import ExternalRouteStream


def _settings(**values) -> StorageSettings:
    settings = StorageSettings()
    settings.values.update({"baseUrl": None, "username": None, "password": None})
    settings.values.update(values)
    return settings


@pytest.fixture
def configured():
    return _settings(baseUrl="https://hub.local:10443", username="admin", password="secret")


@pytest.fixture
def hub_state(entry):
    return {
        "cam1": entry("Front Door", ["VideoCamera", "Battery"], batteryLevel=77),
        "thermo1": entry("Hallway", ["Thermometer"]),
        "ghost1": entry("Ghost", None),
    }


class TestLogin:
    @pytest.mark.parametrize("missing", ["baseUrl", "username", "password"])
    async def test_missing_credential_fails_before_network(self, configured, missing):
        configured.values[missing] = None
        connector = AsyncMock()
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=connector)

        with pytest.raises(ConfigurationError):
            await bridge.try_login()

        connector.assert_not_awaited()
        assert bridge.session is None
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_login_failure_clears_session(self, configured, hub_state, make_session):
        old = make_session(hub_state)
        connector = AsyncMock(side_effect=[old, RemoteConnectionError("unreachable")])
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=connector)
        await bridge.try_login()

        with pytest.raises(RemoteConnectionError):
            await bridge.try_login()

        assert bridge.session is None
        assert old.closed
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_login_success(self, configured, hub_state, make_session):
        session = make_session(hub_state, version="0.120.0")
        connector = AsyncMock(return_value=session)
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=connector)

        assert await bridge.try_login() is session
        credentials = connector.await_args.args[0]
        assert credentials.base_url == "https://hub.local:10443"
        assert bridge.state is BridgeState.AUTHENTICATING

    async def test_start_swallows_missing_config(self):
        bridge = RemoteBridge(LocalDeviceManager(), _settings(), connector=AsyncMock())
        await bridge.start()
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_start_swallows_auth_error(self, configured):
        connector = AsyncMock(side_effect=RemoteAuthError("401"))
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=connector)
        await bridge.start()
        assert bridge.session is None

    async def test_start_with_schemeless_base_url(self):
        # Real connector: the client rejects the URL before any network I/O.
        settings = _settings(baseUrl="hub.local:10443", username="admin", password="secret")
        bridge = RemoteBridge(LocalDeviceManager(), settings)
        await bridge.start()
        assert bridge.session is None
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_unexpected_login_error_resets_state(self, configured):
        connector = AsyncMock(side_effect=ValueError("bad payload"))
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=connector)
        with pytest.raises(ValueError):
            await bridge.try_login()
        assert bridge.session is None
        assert bridge.state is BridgeState.UNCONFIGURED


class TestDiscoveryFlow:
    async def test_full_pass(self, configured, hub_state, make_session):
        manager = LocalDeviceManager()
        bridge = RemoteBridge(manager, configured, connector=AsyncMock(return_value=make_session(hub_state)))

        result = await bridge.clear_try_discover_devices()

        assert bridge.state is BridgeState.READY
        assert [d.native_id for d in result.descriptors] == ["cam1"]
        assert list(manager.devices) == ["cam1"]
        assert manager.get_device_state("cam1")["batteryLevel"] == 77
        assert [d.native_id for d in bridge.devices()] == ["cam1"]

    async def test_discover_without_session_is_noop(self, configured):
        manager = LocalDeviceManager()
        bridge = RemoteBridge(manager, configured, connector=AsyncMock())
        result = await bridge.discover_devices()
        assert result.count == 0
        assert manager.batches == 0

    async def test_credential_change_reauthenticates(self, configured, hub_state, make_session):
        first, second = make_session(hub_state), make_session(hub_state)
        connector = AsyncMock(side_effect=[first, second])
        manager = LocalDeviceManager()
        bridge = RemoteBridge(manager, configured, connector=connector)
        await bridge.start()

        await bridge.put_setting("password", "new-secret")

        assert connector.await_count == 2
        assert connector.await_args.args[0].password == "new-secret"
        assert first.closed
        assert bridge.session is second
        assert first.listener_count("cam1", "VideoCamera") == 0
        assert second.listener_count("cam1", "VideoCamera") == 1
        assert manager.batches == 2

    async def test_clearing_a_credential_surfaces_configuration_error(
        self, configured, hub_state, make_session
    ):
        bridge = RemoteBridge(
            LocalDeviceManager(), configured, connector=AsyncMock(return_value=make_session(hub_state))
        )
        await bridge.start()
        with pytest.raises(ConfigurationError):
            await bridge.put_setting("username", "")
        assert bridge.session is None
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_host_rejecting_batch_rolls_back(self, configured, hub_state, make_session):
        session = make_session(hub_state)
        manager = LocalDeviceManager()
        manager.on_devices_changed = AsyncMock(side_effect=RuntimeError("host busy"))
        bridge = RemoteBridge(manager, configured, connector=AsyncMock(return_value=session))

        with pytest.raises(RuntimeError):
            await bridge.clear_try_discover_devices()

        assert len(bridge.registry) == 0
        assert not bridge.wiring.is_wired("cam1")
        assert session.listener_count("cam1", "VideoCamera") == 0
        assert not isinstance(
            session.get_device_by_id("cam1").get_video_stream, ExternalRouteStream
        )
        assert session.closed
        assert bridge.session is None
        assert bridge.state is BridgeState.UNCONFIGURED


class TestDeviceProvider:
    async def test_get_device_returns_patched_handle(self, configured, hub_state, make_session):
        session = make_session(hub_state)
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock(return_value=session))
        await bridge.start()

        device = await bridge.get_device("cam1")
        assert device is session.get_device_by_id("cam1")
        assert isinstance(device.get_video_stream, ExternalRouteStream)

    async def test_get_unknown_device(self, configured):
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock())
        with pytest.raises(UnknownDeviceError, match="nope does not exist"):
            await bridge.get_device("nope")

    async def test_release_device(self, configured, hub_state, make_session):
        session = make_session(hub_state)
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock(return_value=session))
        await bridge.start()

        await bridge.release_device("host-id-1", "cam1")

        assert "cam1" not in bridge.registry
        assert session.listener_count("cam1", "Battery") == 0
        with pytest.raises(UnknownDeviceError):
            await bridge.get_device("cam1")

    async def test_close(self, configured, hub_state, make_session):
        session = make_session(hub_state)
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock(return_value=session))
        await bridge.start()
        await bridge.close()
        assert session.closed
        assert bridge.state is BridgeState.UNCONFIGURED

    async def test_release_device_restores_stream_method(self, configured, hub_state, make_session):
        session = make_session(hub_state)
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock(return_value=session))
        await bridge.start()
        handle = await bridge.get_device("cam1")

        await bridge.release_device("host-id-1", "cam1")

        assert not isinstance(handle.get_video_stream, ExternalRouteStream)
        await handle.get_video_stream()
        session.client.call_method.assert_awaited_once_with("cam1", "getVideoStream", [None])


class TestSettings:
    async def test_password_masked(self, configured):
        bridge = RemoteBridge(LocalDeviceManager(), configured, connector=AsyncMock())
        settings = {s.key: s for s in await bridge.get_settings()}
        assert settings["password"].value == "********"
        assert settings["password"].type == "password"
        assert settings["baseUrl"].placeholder == "https://localhost:10443"
