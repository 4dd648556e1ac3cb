"""Remote Bridge one-shot discovery.

Usage::

    python -m remotebridge [--base-url URL] [--username NAME] [--password PW]
                           [--settings PATH] [--listen SECONDS] [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m remotebridge",
        description="Discover devices on a remote hub and print what would be imported",
    )
    parser.add_argument("--base-url", default=None, help="Remote hub URL (or REMOTE_BASE_URL)")
    parser.add_argument("--username", default=None, help="Remote hub username (or REMOTE_USERNAME)")
    parser.add_argument("--password", default=None, help="Remote hub password (or REMOTE_PASSWORD)")
    parser.add_argument(
        "--settings",
        metavar="PATH",
        default=None,
        help="Settings JSON file (default: in-memory, environment only)",
    )
    parser.add_argument(
        "--listen",
        metavar="SECONDS",
        type=float,
        default=0.0,
        help="Keep forwarding remote events for this long and print them",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    from remotebridge.bridge import RemoteBridge
    from remotebridge.errors import ConfigurationError
    from remotebridge.host import LocalDeviceManager
    from remotebridge.remote.client import RemoteClientError
    from remotebridge.settings import StorageSettings

    settings = StorageSettings(path=args.settings)
    for key, value in (
        ("baseUrl", args.base_url),
        ("username", args.username),
        ("password", args.password),
    ):
        if value:
            settings.values[key] = value

    manager = LocalDeviceManager()
    bridge = RemoteBridge(manager, settings=settings)
    try:
        result = await bridge.clear_try_discover_devices()
    except (ConfigurationError, RemoteClientError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        print(json.dumps([d.to_dict() for d in result.descriptors], indent=2, default=str))
        print(
            f"Discovered {result.count} devices "
            f"({len(result.skipped_unsupported)} unsupported, "
            f"{len(result.skipped_stale)} unreachable)",
            file=sys.stderr,
        )
        if args.listen > 0:
            await asyncio.sleep(args.listen)
            for event in manager.events:
                print(json.dumps({
                    "nativeId": event.native_id,
                    "interface": event.interface,
                    "data": event.data,
                }, default=str))
            print(json.dumps(manager.states, indent=2, default=str))
    finally:
        await bridge.close()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
