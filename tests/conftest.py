"""pytest configuration and shared fakes for Remote Bridge tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from remotebridge.remote.session import RemoteSession


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def _entry(
    name: str,
    interfaces: list[str] | None,
    *,
    type: str = "Camera",
    native_id: str | None = None,
    info: dict | None = None,
    **props: Any,
) -> dict:
    """Build one system-state entry in the remote hub's snapshot shape."""
    entry: dict[str, dict] = {
        "name": {"value": name},
        "type": {"value": type},
        "nativeId": {"value": native_id or name.lower().replace(" ", "-")},
        "info": {"value": info or {}},
    }
    if interfaces is not None:
        entry["interfaces"] = {"value": list(interfaces)}
    for key, value in props.items():
        entry[key] = {"value": value}
    return entry


@pytest.fixture
def entry():
    return _entry


@pytest.fixture
def make_session():
    """Return a factory for sessions over an in-memory snapshot and a mocked client."""

    def _make(state: dict[str, dict], version: str = "0.99.0") -> RemoteSession:
        client = MagicMock()
        client.call_method = AsyncMock(return_value={"ok": True})
        client.get_system_state = AsyncMock(return_value=state)
        client.aclose = AsyncMock()
        return RemoteSession(client, state, server_version=version)

    return _make
