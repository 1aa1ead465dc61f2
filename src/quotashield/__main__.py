"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command-line entrypoint.

Usage examples:
  python -m quotashield serve
  python -m quotashield serve --host 0.0.0.0 --port 8080
  python -m quotashield settings
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging

from .settings import QuotaShieldSettings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="quotashield",
        description="Quota-protected video search service",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Serve the HTTP host with uvicorn")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--log-level", type=str, default="info")

    sub.add_parser("settings", help="Print resolved settings (API key redacted)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = QuotaShieldSettings.from_env()

    if args.command == "settings":
        rendered = dataclasses.asdict(settings)
        if rendered.get("youtube_api_key"):
            rendered["youtube_api_key"] = "***"
        print(json.dumps(rendered, indent=2, sort_keys=True))
        return

    from .factory import create_runtime
    from .server.app import QuotaShieldServiceHost

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = QuotaShieldServiceHost(create_runtime(settings))
    host.run(
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
