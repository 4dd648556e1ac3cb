"""Tests for StorageSettings and Credentials."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from remotebridge.settings import Credentials, StorageSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("REMOTE_BASE_URL", "REMOTE_USERNAME", "REMOTE_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


class TestCredentials:
    def test_complete(self):
        assert Credentials("https://hub", "u", "p").is_complete()

    @pytest.mark.parametrize("creds", [
        Credentials("", "u", "p"),
        Credentials("https://hub", "", "p"),
        Credentials("https://hub", "u", ""),
        Credentials(),
    ])
    def test_incomplete(self, creds):
        assert not creds.is_complete()


class TestStorageSettings:
    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("REMOTE_BASE_URL", "https://env-hub:10443")
        settings = StorageSettings()
        assert settings.credentials().base_url == "https://env-hub:10443"
        assert settings.credentials().username == ""

    def test_file_wins_over_env(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"username": "from-file"}))
        monkeypatch.setenv("REMOTE_USERNAME", "from-env")
        assert StorageSettings(path=path).credentials().username == "from-file"

    async def test_put_saves_and_runs_hook(self, tmp_path):
        path = tmp_path / "data" / "settings.json"
        hook = AsyncMock()
        settings = StorageSettings(path=path, on_put=hook)

        await settings.put_setting("baseUrl", "https://hub.local")

        assert json.loads(path.read_text()) == {"baseUrl": "https://hub.local"}
        hook.assert_awaited_once_with("baseUrl", "https://hub.local")
        assert StorageSettings(path=path).values["baseUrl"] == "https://hub.local"

    async def test_put_unknown_key(self):
        hook = AsyncMock()
        settings = StorageSettings(on_put=hook)
        with pytest.raises(KeyError):
            await settings.put_setting("token", "x")
        hook.assert_not_awaited()

    async def test_empty_value_clears(self):
        settings = StorageSettings()
        await settings.put_setting("username", "admin")
        await settings.put_setting("username", "")
        assert settings.values["username"] is None

    async def test_get_settings_order_and_mask(self):
        settings = StorageSettings()
        await settings.put_setting("password", "hunter2")
        result = await settings.get_settings()
        assert [s.key for s in result] == ["baseUrl", "username", "password"]
        assert result[2].to_dict()["value"] == "********"

    async def test_unset_password_not_masked(self):
        result = await StorageSettings().get_settings()
        assert result[2].value is None
