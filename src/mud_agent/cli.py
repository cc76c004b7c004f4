from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from .adapters.chat_http import ChatCompletionClient
from .adapters.console import ConsoleOperator, ConsoleSession
from .adapters.telnet import TelnetSession
from .config import AppConfig, LoggingConfig, load_config
from .core.characters import CharacterBook
from .core.coordinator import TurnCoordinator
from .core.errors import ConfigError
from .core.prompts import build_instruction
from .core.transcript import Transcript
from .persistence.sqlalchemy import SQLAlchemyUnitOfWork, build_engine, build_session_factory, create_schema
from .runner import SessionRunner

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    level = logging.DEBUG if debug else getattr(logging, config.level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # Request bodies hold the whole transcript.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mud-agent", description="Let a language model play a MUD.")
    parser.add_argument("--config", type=Path, default=Path("config.json"),
                        help="JSON config file (default: ./config.json)")
    parser.add_argument("--debug", action="store_true", help="Log at debug level")
    parser.add_argument("--dry-run", action="store_true",
                        help="Read session text from stdin instead of connecting")
    parser.add_argument("--character", default=None, help="Continue as this character (id or name)")
    parser.add_argument("--list-characters", action="store_true", help="List known characters and exit")
    parser.add_argument("--approve", action="store_true", help="Ask before each command is sent")
    return parser


def open_book(config: AppConfig) -> CharacterBook:
    engine = build_engine(config.storage.database_url)
    create_schema(engine)
    session_factory = build_session_factory(engine)
    book = CharacterBook(lambda: SQLAlchemyUnitOfWork(session_factory))
    book.load()
    return book


def build_coordinator(
    config: AppConfig,
    book: CharacterBook,
    character_id: str | None,
    operator: ConsoleOperator,
    transport,
    approve: bool,
) -> TurnCoordinator:
    instruction = build_instruction(
        book.character_context(character_id),
        contact_email=config.coordinator.contact_email,
    )
    agent = ChatCompletionClient(
        base_url=config.provider.base_url,
        model=config.provider.model,
        provider_format=config.provider.provider,  # type: ignore[arg-type]
        temperature=config.provider.temperature,
        api_key=config.provider.api_key,
        timeout=config.provider.timeout,
    )
    return TurnCoordinator(
        agent,
        transport,
        Transcript(instruction, budget=config.coordinator.token_budget),
        book,
        character_id=character_id,
        operator=operator,
        approval=operator if approve else None,
        fallback_directive=config.coordinator.fallback_command,
    )


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, os.environ)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    configure_logging(config.logging, debug=args.debug)

    book = open_book(config)
    if args.list_characters:
        records = book.list_characters()
        if not records:
            print("No characters recorded yet.")
        for record in records:
            print(f"{record.id}  {record.name}  level {record.level} {record.race} {record.character_class}")
        return 0

    character_id = None
    if args.character:
        record = book.get(args.character) or book.find_by_name(args.character)
        if record is None:
            print(f"Unknown character: {args.character}", file=sys.stderr)
            return 1
        character_id = record.id
        logger.info("Continuing as %s (%s)", record.name, record.id)

    if args.dry_run:
        transport = ConsoleSession(readline=sys.stdin.readline)
    else:
        transport = TelnetSession(
            config.session.host,
            config.session.port,
            encoding=config.session.encoding,
            connect_timeout=config.session.connect_timeout,
        )

    operator = ConsoleOperator()
    coordinator = build_coordinator(
        config,
        book,
        character_id,
        operator,
        transport,
        approve=args.approve or config.coordinator.require_approval,
    )
    runner = SessionRunner(
        transport,
        coordinator,
        initial_wait_seconds=config.session.initial_wait_seconds,
    )
    try:
        asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except OSError as exc:
        logger.error("Session failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
