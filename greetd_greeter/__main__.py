"""Command line entry point for the greetd greeter."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config import GreeterConfig, load_config
from .conversation import Conversation
from .errors import GreeterError, GreeterInterrupted
from .greeter import Greeter
from .keyboard import KeystrokeSource
from .launch import LaunchDispatcher
from .render import TerminalRenderer
from .sessions import SessionCatalog, discover_sessions
from .transport.client import GreetdClient
from .transport.ipc import socket_path_from_env

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="greetd-greeter",
        description="Log in through greetd and start a desktop session.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file.")
    parser.add_argument("--socket", dest="socket_path", help="greetd socket path.")
    parser.add_argument(
        "-u",
        "--username",
        help="Autofill your own username on a single user computer.",
    )
    parser.add_argument("-s", "--session", help="Default session for this login.")
    parser.add_argument(
        "--wrapper",
        dest="session_wrapper",
        help="Program that receives the session command.",
    )
    parser.add_argument("--log-level", help="Logging level (default: INFO).")
    parser.add_argument("--log-file", help="Write logs to this file.")
    return parser


def _configure_logging(config: GreeterConfig) -> None:
    logging.basicConfig(
        level=config.log_level,
        filename=str(config.log_file) if config.log_file else None,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run(config: GreeterConfig, catalog: SessionCatalog) -> None:
    socket_path = config.socket_path or socket_path_from_env()

    client = GreetdClient(
        socket_path,
        connect_timeout=config.connect_timeout,
        response_timeout=config.response_timeout,
    )
    conversation = Conversation(
        config.username, max_prompt_rounds=config.max_prompt_rounds
    )
    dispatcher = LaunchDispatcher(client, wrapper=config.session_wrapper)

    async with client, KeystrokeSource() as keys:
        greeter = Greeter(
            client,
            conversation,
            catalog,
            keys,
            TerminalRenderer(),
            dispatcher=dispatcher,
        )
        await greeter.run()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(
            args.config,
            overrides={
                "socket_path": args.socket_path,
                "username": args.username,
                "session": args.session,
                "session_wrapper": args.session_wrapper,
                "log_level": args.log_level,
                "log_file": args.log_file,
            },
        )
    except GreeterError as err:
        print(f"greetd-greeter: {err}", file=sys.stderr)
        return EXIT_ERROR

    _configure_logging(config)

    try:
        sessions = discover_sessions(config.session_dirs) + list(config.sessions)
        catalog = SessionCatalog(sessions, default=config.session)
        asyncio.run(_run(config, catalog))
    except GreeterInterrupted:
        _LOGGER.info("Interrupted")
        return EXIT_INTERRUPTED
    except GreeterError as err:
        _LOGGER.error("%s", err)
        return EXIT_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
