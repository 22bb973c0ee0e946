"""Command line entry points: the orchestration server and a reference bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

import uvicorn

from .config import ENV_PREFIX, ArenaSettings
from .reference_bot import ReferenceBot


def _build_parser() -> argparse.ArgumentParser:
    defaults = ArenaSettings()
    parser = argparse.ArgumentParser(description="Discover snake bots on the LAN and run games between them.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Python logging level")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the discovery and session service")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None, help=f"Frontend websocket port (default {defaults.port})")
    serve.add_argument("--broadcast-address", type=str, default=None)
    serve.add_argument(
        "--announce-interval",
        type=float,
        default=None,
        help=f"Seconds between discovery broadcasts (default {defaults.announce_interval})",
    )
    serve.add_argument(
        "--bot-timeout",
        type=float,
        default=None,
        help=f"Seconds before an unanswered bot is dropped (default {defaults.bot_timeout})",
    )

    bot = commands.add_parser("dummy-bot", help="Run a greedy reference bot")
    bot.add_argument("--id", dest="bot_id", type=str, default=os.getenv("BOT_ID"))
    bot.add_argument("--name", type=str, default=os.getenv("BOT_NAME", "UnnamedBot"))
    bot.add_argument("--ws-port", type=int, default=int(os.getenv("WS_PORT", "8081")))
    bot.add_argument("--discovery-port", type=int, default=defaults.discovery_port)
    bot.add_argument("--advertise-host", type=str, default=None, help="Host put in the advertised url")
    return parser


def _serve(args: argparse.Namespace) -> None:
    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "BROADCAST_ADDRESS": args.broadcast_address,
        "ANNOUNCE_INTERVAL": args.announce_interval,
        "BOT_TIMEOUT": args.bot_timeout,
    }
    for key, value in overrides.items():
        if value is not None:
            os.environ[f"{ENV_PREFIX}{key}"] = str(value)
    settings = ArenaSettings.from_env()
    uvicorn.run(
        "snakearena.server:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=args.log_level.lower(),
    )


def _dummy_bot(args: argparse.Namespace) -> None:
    bot = ReferenceBot(
        bot_id=args.bot_id,
        name=args.name,
        ws_port=args.ws_port,
        discovery_port=args.discovery_port,
        advertise_host=args.advertise_host,
    )
    try:
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "serve":
        _serve(args)
    else:
        _dummy_bot(args)


if __name__ == "__main__":
    main()
