"""Error taxonomy for the bridge.

Transport and login failures are raised by the remote client
(:mod:`remotebridge.remote.client`); everything else lives here.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base error for bridge failures."""


class ConfigurationError(BridgeError):
    """Raised when a required credential field is missing."""


class StaleDeviceError(BridgeError):
    """Raised when a remote device can no longer be accessed."""


class UnknownDeviceError(BridgeError, KeyError):
    """Raised when the host asks for a device the bridge never imported."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
