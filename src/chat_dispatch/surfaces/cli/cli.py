import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ... import __version__
from ...core.config import DispatchConfig, load_config
from ...core.exceptions import ConfigError
from ...core.logging_utils import setup_logging
from ...integrations.chat.builtin_commands import builtin_descriptors
from ...integrations.chat.dispatcher import (
    CommandDispatcher,
    DispatchOutcome,
    build_dispatcher,
)
from ...integrations.chat.models import InboundEvent
from ...integrations.chat.sudo_store import JsonSudoListStore

logger = logging.getLogger("chat_dispatch.cli")

app = typer.Typer(add_completion=False)
sudo_app = typer.Typer(add_completion=False)


class ConsoleTransport:
    """Prints replies to stdout instead of a chat platform."""

    async def send_reply(self, chat_id: str, content: str) -> None:
        typer.echo(f"[{chat_id}] {content}")


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_config(path: Optional[Path]) -> DispatchConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        raise_exit(f"Invalid configuration: {exc}", cause=exc)


def build_console_dispatcher(config: DispatchConfig) -> CommandDispatcher:
    transport = ConsoleTransport()
    dispatcher = build_dispatcher(config, transport=transport, logger=logger)
    dispatcher.register_commands(
        builtin_descriptors(
            transport=transport,
            registry=dispatcher.registry,
            stats=dispatcher.stats,
        )
    )
    return dispatcher


def _describe(outcome: DispatchOutcome) -> str:
    command = f" {outcome.command}" if outcome.command else ""
    return f"status: {outcome.status.value}{command} ({outcome.reason})"


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"chat-dispatch {__version__}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    return


@app.command("commands")
def list_commands(
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    """List registered commands and their aliases."""
    config = require_config(path)
    dispatcher = build_console_dispatcher(config)
    for descriptor in dispatcher.registry.descriptors():
        aliases = ", ".join(sorted(descriptor.aliases)) or "-"
        typer.echo(
            f"{config.prefix}{descriptor.name}\t{descriptor.required_role.name.lower()}"
            f"\t{aliases}\t{descriptor.description}"
        )


@app.command("dispatch")
def dispatch_once(
    text: str = typer.Argument(..., help="Message text, e.g. '.ping'"),
    user: str = typer.Option("console-user", "--user", help="Sender id"),
    chat: str = typer.Option("console", "--chat", help="Chat id"),
    event_id: Optional[str] = typer.Option(None, "--event-id", help="Event id"),
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    """Run one message through the dispatcher and print the outcome."""
    config = require_config(path)
    setup_logging(config.log, stream=False)
    dispatcher = build_console_dispatcher(config)
    event = InboundEvent(
        event_id=event_id or uuid.uuid4().hex,
        chat_id=chat,
        subject_id=user,
        text=text,
    )
    outcome = asyncio.run(dispatcher.dispatch(event))
    typer.echo(_describe(outcome))


@app.command("console")
def console(
    user: str = typer.Option("console-user", "--user", help="Sender id"),
    chat: str = typer.Option("console", "--chat", help="Chat id"),
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    """Dispatch each stdin line as a chat message until EOF."""
    config = require_config(path)
    setup_logging(config.log, stream=False)
    dispatcher = build_console_dispatcher(config)

    async def _run() -> None:
        async with dispatcher:
            for line in sys.stdin:
                text = line.rstrip("\n")
                if not text.strip():
                    continue
                outcome = await dispatcher.dispatch(
                    InboundEvent(
                        event_id=uuid.uuid4().hex,
                        chat_id=chat,
                        subject_id=user,
                        text=text,
                    )
                )
                typer.echo(_describe(outcome))

    asyncio.run(_run())


def _sudo_store(path: Optional[Path]) -> JsonSudoListStore:
    config = require_config(path)
    return JsonSudoListStore(config.sudo_file, owner_ids=config.owner_ids)


@sudo_app.command("list")
def sudo_list(
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    store = _sudo_store(path)
    try:
        entries = store.load()
    except ValueError as exc:
        raise_exit(str(exc), cause=exc)
    if not entries:
        typer.echo("No sudo users.")
        return
    for entry in entries:
        typer.echo(entry)


@sudo_app.command("add")
def sudo_add(
    subject_id: str = typer.Argument(..., help="Subject id to grant"),
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    store = _sudo_store(path)
    try:
        added = store.add(subject_id)
    except ValueError as exc:
        raise_exit(str(exc), cause=exc)
    typer.echo(f"Added {subject_id}" if added else f"{subject_id} is already sudo")


@sudo_app.command("remove")
def sudo_remove(
    subject_id: str = typer.Argument(..., help="Subject id to revoke"),
    path: Optional[Path] = typer.Option(None, "--path", help="Config root"),
) -> None:
    store = _sudo_store(path)
    try:
        removed = store.remove(subject_id)
    except ValueError as exc:
        raise_exit(str(exc), cause=exc)
    typer.echo(f"Removed {subject_id}" if removed else f"{subject_id} is not sudo")


app.add_typer(sudo_app, name="sudo")


def main() -> None:
    """Entrypoint for CLI execution."""
    app()
