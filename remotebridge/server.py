"""Remote Bridge — local admin API.

Exposes:
  GET    /health                 — liveness and bridge state
  GET    /settings               — credential settings (password masked)
  PUT    /settings/{key}         — change a setting, then log in and rediscover
  GET    /devices                — imported devices
  GET    /devices/{native_id}    — one imported device with its host state
  DELETE /devices/{native_id}    — release a device
  POST   /refresh                — log in again and rediscover

Start with::

    python -m remotebridge.server
    # or
    uvicorn remotebridge.server:app --host 0.0.0.0 --port 5200
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from remotebridge.bridge import RemoteBridge
from remotebridge.errors import ConfigurationError, UnknownDeviceError
from remotebridge.host import LocalDeviceManager
from remotebridge.remote.client import RemoteAuthError, RemoteClientError
from remotebridge.settings import StorageSettings

logger = logging.getLogger(__name__)

_bridge: RemoteBridge | None = None


def get_bridge() -> RemoteBridge:
    global _bridge
    if _bridge is None:
        _bridge = RemoteBridge(LocalDeviceManager(), settings=StorageSettings.default())
    return _bridge


def set_bridge(bridge: RemoteBridge | None) -> None:
    """Swap the bridge instance (tests and embedding hosts)."""
    global _bridge
    _bridge = bridge


@asynccontextmanager
async def lifespan(_: FastAPI):
    bridge = get_bridge()
    await bridge.start()
    yield
    await bridge.close()


app = FastAPI(title="Remote Bridge", version="1.0.0", lifespan=lifespan)


# ──────────────────────────────────────────────────────────────────
# Request / Response models
# ──────────────────────────────────────────────────────────────────

class SettingValue(BaseModel):
    value: Any = None


def _login_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, RemoteAuthError):
        return HTTPException(status_code=401, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def _summary(bridge: RemoteBridge) -> dict[str, Any]:
    result = bridge.last_result
    return {
        "state": bridge.state.value,
        "discovered": result.count if result else 0,
        "skipped_stale": list(result.skipped_stale) if result else [],
        "skipped_unsupported": list(result.skipped_unsupported) if result else [],
    }


# ──────────────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    bridge = get_bridge()
    session = bridge.session
    return {
        "status": "ok" if session is not None else "unconfigured",
        "state": bridge.state.value,
        "server_version": session.server_version if session else None,
        "devices": len(bridge.registry),
    }


@app.get("/settings")
async def list_settings():
    settings = await get_bridge().get_settings()
    return {"settings": [s.to_dict() for s in settings]}


@app.put("/settings/{key}")
async def put_setting(key: str, body: SettingValue):
    bridge = get_bridge()
    try:
        await bridge.put_setting(key, body.value)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown setting: {key}")
    except (ConfigurationError, RemoteClientError) as exc:
        raise _login_error(exc)
    return _summary(bridge)


@app.get("/devices")
async def list_devices():
    return {"devices": [d.to_dict() for d in get_bridge().devices()]}


@app.get("/devices/{native_id}")
async def get_device(native_id: str):
    bridge = get_bridge()
    try:
        await bridge.get_device(native_id)
    except UnknownDeviceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    descriptor = bridge.registry.descriptor(native_id)
    return {
        **(descriptor.to_dict() if descriptor else {"nativeId": native_id}),
        "state": dict(bridge.manager.get_device_state(native_id)),
    }


@app.delete("/devices/{native_id}")
async def release_device(native_id: str):
    bridge = get_bridge()
    if native_id not in bridge.registry:
        raise HTTPException(status_code=404, detail=f"{native_id} does not exist")
    await bridge.release_device(native_id, native_id)
    return {"released": native_id}


@app.post("/refresh")
async def refresh():
    bridge = get_bridge()
    try:
        await bridge.clear_try_discover_devices()
    except (ConfigurationError, RemoteClientError) as exc:
        raise _login_error(exc)
    return _summary(bridge)


# ──────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────

def main():
    import uvicorn
    host = os.environ.get("BRIDGE_HOST", "0.0.0.0")
    port = int(os.environ.get("BRIDGE_PORT", "5200"))
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting Remote Bridge admin API on %s:%d", host, port)
    uvicorn.run("remotebridge.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
