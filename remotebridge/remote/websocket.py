"""Remote hub event stream.

Each session opens one WebSocket to ``{base_url}/api/events``, authorized
with the session token in the ``Authorization`` header. Every text frame
carries either one device event or a list of them::

    {"id": "<device id>", "interface": "Battery",
     "property": "batteryLevel", "value": 80, "eventTime": 1700000000.0}

``property`` is absent for events that are not state changes. Frames that
do not decode, and entries without a device id and interface, are skipped.

Uses :mod:`aiohttp`. There is no reconnect loop: once the stream ends it
stays down until the next login opens a new session.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import aiohttp

logger = logging.getLogger(__name__)

EVENTS_PATH = "/api/events"

# Close code the hub uses when it no longer accepts the session token.
CLOSE_TOKEN_REJECTED = 4401


class RemoteEventStream:
    """Device event stream of one remote session.

    Parameters
    ----------
    base_url:
        Remote hub base URL (e.g. ``https://hub.local:10443``).
    token:
        Session token returned by the REST login.
    verify_tls:
        Whether to verify the hub's TLS certificate.
    heartbeat:
        Seconds between WebSocket pings.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        verify_tls: bool = False,
        heartbeat: float = 30.0,
    ) -> None:
        self.url = base_url.rstrip("/") + EVENTS_PATH
        self._token = token
        self._verify_tls = verify_tls
        self._heartbeat = heartbeat
        self._callbacks: list[Callable[[dict], Any]] = []
        self._task: asyncio.Task | None = None
        self._connected = False

    @property
    def connected(self) -> bool:
        """``True`` while the WebSocket is open."""
        return self._connected

    def on_event(self, callback: Callable[[dict], Any]) -> None:
        """Register a callback invoked with every device event dict."""
        self._callbacks.append(callback)

    async def start(self) -> None:
        """Open the stream in a background task (no-op if already running)."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._consume())

    async def stop(self) -> None:
        """Cancel the background task. Never raises for a failed stream."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:  # noqa: BLE001
            logger.exception("Remote event stream ended with an error")
        self._connected = False

    def feed(self, raw: str | bytes) -> int:
        """Decode one text frame and dispatch its events; returns how many."""
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Skipping undecodable event frame")
            return 0

        entries = payload if isinstance(payload, list) else [payload]
        dispatched = 0
        for event in entries:
            if not isinstance(event, dict) or not event.get("id") or not event.get("interface"):
                logger.debug("Skipping malformed event %r", event)
                continue
            for cb in self._callbacks:
                try:
                    cb(event)
                except Exception:  # noqa: BLE001
                    logger.exception("Error in remote event callback")
            dispatched += 1
        return dispatched

    async def _consume(self) -> None:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            async with aiohttp.ClientSession(headers=headers) as http:
                async with http.ws_connect(
                    self.url, ssl=self._verify_tls, heartbeat=self._heartbeat
                ) as ws:
                    self._connected = True
                    logger.info("Remote event stream open at %s", self.url)
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            self.feed(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            break
                    if ws.close_code == CLOSE_TOKEN_REJECTED:
                        logger.error("Remote hub closed the event stream: token rejected")
        except aiohttp.WSServerHandshakeError as exc:
            logger.error("Remote hub refused the event stream (%s)", exc.status)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Remote event stream disconnected: %s", exc)
        finally:
            self._connected = False
