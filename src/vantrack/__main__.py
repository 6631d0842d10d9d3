"""Run the vantrack HTTP service: ``python -m vantrack``."""

from __future__ import annotations

import argparse
import logging

from aiohttp import web

from vantrack.config import VantrackConfig
from vantrack.server import build_app


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="School van custody-transfer service")
    parser.add_argument("--host", default=None, help="Bind address (default: VANTRACK_SERVER_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: VANTRACK_SERVER_PORT or 5000)")
    parser.add_argument("--no-geocoding", action="store_true", help="Disable reverse geocoding lookups")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    overrides: dict[str, object] = {}
    if args.host is not None:
        overrides["server_host"] = args.host
    if args.port is not None:
        overrides["server_port"] = args.port
    if args.no_geocoding:
        overrides["geocoding_enabled"] = False
    config = VantrackConfig.from_env(**overrides)
    web.run_app(build_app(config), host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    main()
