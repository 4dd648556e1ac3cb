"""Bridge settings: remote hub URL and login, loaded from settings.json.

Values not present in the file fall back to environment variables
(``REMOTE_BASE_URL``, ``REMOTE_USERNAME``, ``REMOTE_PASSWORD``). Every
:meth:`StorageSettings.put_setting` saves the file and then awaits the
change hook, which the bridge uses to log in again and rediscover devices.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

_MASK = "********"


@dataclass(frozen=True)
class Credentials:
    base_url: str = ""
    username: str = ""
    password: str = ""

    def is_complete(self) -> bool:
        return bool(self.base_url and self.username and self.password)


@dataclass(frozen=True)
class SettingSpec:
    key: str
    title: str
    placeholder: str = ""
    type: str = "string"
    env: str = ""


@dataclass
class Setting:
    """One setting as shown to the settings UI."""
    key: str
    title: str
    value: Any = None
    placeholder: str = ""
    type: str = "string"

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "value": self.value,
            "placeholder": self.placeholder,
            "type": self.type,
        }


CREDENTIAL_SETTINGS: tuple[SettingSpec, ...] = (
    SettingSpec("baseUrl", "Base URL", placeholder="https://localhost:10443", env="REMOTE_BASE_URL"),
    SettingSpec("username", "Username", env="REMOTE_USERNAME"),
    SettingSpec("password", "Password", type="password", env="REMOTE_PASSWORD"),
)


class StorageSettings:
    """Key/value settings backed by an optional JSON file.

    Args:
        specs:  The settings this store accepts.
        path:   JSON file to load from and save to; ``None`` keeps values in memory.
        on_put: Async hook awaited after every successful :meth:`put_setting`.
    """

    def __init__(
        self,
        specs: tuple[SettingSpec, ...] = CREDENTIAL_SETTINGS,
        path: str | Path | None = None,
        on_put: Callable[[str, Any], Awaitable[None]] | None = None,
    ) -> None:
        self._specs = {s.key: s for s in specs}
        self._path = Path(path) if path else None
        self.on_put = on_put
        self.values: dict[str, Any] = {}
        self._load()

    @classmethod
    def default(cls) -> StorageSettings:
        """Settings stored at ``BRIDGE_SETTINGS`` (default ``./data/settings.json``)."""
        return cls(path=os.environ.get("BRIDGE_SETTINGS", "./data/settings.json"))

    def _load(self) -> None:
        data: dict[str, Any] = {}
        if self._path is not None and self._path.exists():
            with open(self._path) as f:
                data = json.load(f)
        elif self._path is not None:
            logger.debug("Settings not found at %s, using environment", self._path)
        for key, spec in self._specs.items():
            value = data.get(key)
            if value in (None, "") and spec.env:
                value = os.environ.get(spec.env) or None
            self.values[key] = value

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as f:
            json.dump({k: v for k, v in self.values.items() if v is not None}, f, indent=2)

    async def get_settings(self) -> list[Setting]:
        """Return all settings; password-type values are masked."""
        result: list[Setting] = []
        for key, spec in self._specs.items():
            value = self.values.get(key)
            if spec.type == "password" and value:
                value = _MASK
            result.append(Setting(key, spec.title, value, spec.placeholder, spec.type))
        return result

    async def put_setting(self, key: str, value: Any) -> None:
        """Store *value* under *key*, persist, and run the change hook."""
        if key not in self._specs:
            raise KeyError(f"Unknown setting: {key}")
        self.values[key] = value if value != "" else None
        self.save()
        logger.info("Setting %s updated", key)
        if self.on_put is not None:
            await self.on_put(key, value)

    def credentials(self) -> Credentials:
        return Credentials(
            base_url=self.values.get("baseUrl") or "",
            username=self.values.get("username") or "",
            password=self.values.get("password") or "",
        )
