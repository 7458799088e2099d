"""Command-line interface for the GeoUsers service."""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from geousers.config import ConfigurationError, Settings, load_settings
from geousers.errors import ServiceError
from geousers.logging_config import configure_logging

logger = logging.getLogger("geousers.main")

KNOWN_COMMANDS = {"serve", "list-users", "geocode"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GeoUsers service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML settings file (default: GEOUSERS_CONFIG or config/settings.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", host=None, port=None)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP users API")
    serve_parser.add_argument("--host", default=None, help="Bind address (overrides settings)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides settings, default: 8080)",
    )
    serve_parser.add_argument(
        "--config",
        dest="serve_config",
        default=None,
        help="Path to the YAML settings file",
    )

    subparsers.add_parser("list-users", help="Print every stored user as a table")

    geocode_parser = subparsers.add_parser(
        "geocode", help="Resolve a ZIP code to coordinates and timezone"
    )
    geocode_parser.add_argument("zip_code", help="US ZIP code, e.g. 10001 or 10001-1234")

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in KNOWN_COMMANDS and first != "--config":
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    args = parser.parse_args(args_list)
    if args.command == "serve" and getattr(args, "serve_config", None):
        args.config = args.serve_config
    return args


def _load(config: str | None) -> Settings:
    return load_settings(Path(config).expanduser() if config else None)


def _serve(settings: Settings, *, host: str | None, port: int | None) -> None:
    from geousers.service import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting users API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level=settings.log_level.lower(),
        proxy_headers=False,
    )


async def _list_users(settings: Settings) -> int:
    from geousers.service import build_store

    store = build_store(settings)
    try:
        users = await store.find_all()
    finally:
        await store.aclose()

    if not users:
        print(f"No users are stored in the {store.backend_name} store.")
        return 0

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Name':<24}  {'ZIP':<10}  {'Lat':>9}  {'Lon':>10}  Timezone")
    print("-" * 100)
    for user in users:
        print(
            f"{user.id:<32}  {user.name[:24]:<24}  {user.zip_code:<10}  "
            f"{user.latitude:>9.4f}  {user.longitude:>10.4f}  {user.timezone}"
        )
    return 0


async def _geocode(settings: Settings, zip_code: str) -> int:
    from geousers.service import build_geodata_client

    client = build_geodata_client(settings)
    try:
        geodata = await client.get_by_zip_code(zip_code)
    except ServiceError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()

    print(f"ZIP code:  {zip_code}")
    print(f"Latitude:  {geodata.latitude}")
    print(f"Longitude: {geodata.longitude}")
    print(f"Timezone:  {geodata.timezone}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)

    try:
        settings = _load(args.config)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port)
        return 0
    if args.command == "list-users":
        return asyncio.run(_list_users(settings))
    if args.command == "geocode":
        return asyncio.run(_geocode(settings, args.zip_code))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
