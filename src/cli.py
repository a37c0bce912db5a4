"""Polymarket relay CLI entry point."""

from __future__ import annotations

import argparse
import sys

from src.config.loader import ConfigError, ConfigLoader
from src.config.settings import RelaySettings


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="polymarket-relay",
        description="Signing relay for the Polymarket CLOB — keeps L2 secrets server-side",
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Config directory path (default: config)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Environment name (default: from RELAY_ENV)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the relay HTTP server")
    serve.add_argument("--host", type=str, default=None, help="Bind host (default: from config)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: from config)")

    commands.add_parser("check-config", help="Load and validate config, then exit")

    return parser


def load_settings(config_dir: str, env: str | None) -> RelaySettings:
    loader = ConfigLoader(config_dir=config_dir, env=env)
    loader.load()
    return RelaySettings.from_loader(loader)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config_dir, args.env)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    if args.command == "check-config":
        print(f"Config OK (env: {settings.env}, exchange: {settings.clob_url})")
        return 0

    if args.command == "serve":
        import uvicorn

        from src.relay.app import create_app

        try:
            app = create_app(settings)
        except ConfigError as exc:
            print(f"Config error: {exc}", file=sys.stderr)
            return 2

        print(f"Starting relay on {args.host or settings.host}:{args.port or settings.port} (env: {settings.env})")
        uvicorn.run(
            app,
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
