"""Remote Bridge — re-expose devices from a remote hub on a local host hub.

Quickstart::

    from remotebridge.bridge import RemoteBridge
    from remotebridge.host import LocalDeviceManager
    from remotebridge.settings import StorageSettings

    manager = LocalDeviceManager()
    bridge = RemoteBridge(manager, settings=StorageSettings.default())
    await bridge.start()   # login + discovery
"""

__version__ = "1.0.0"
