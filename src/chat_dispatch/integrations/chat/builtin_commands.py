"""Commands every deployment ships with: ping, menu, stats."""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Callable, Optional

from .command_registry import CommandDescriptor, CommandRegistry
from .dispatcher import DispatchContext
from .permissions import Role
from .stats import CommandStats
from .transport import MessageTransport


def format_menu(registry: CommandRegistry, *, role: Role, prefix: str) -> str:
    grouped: dict[str, list[CommandDescriptor]] = defaultdict(list)
    for descriptor in registry.descriptors():
        if descriptor.required_role <= role:
            grouped[descriptor.category].append(descriptor)
    lines = ["Available commands:"]
    for category in sorted(grouped):
        lines.append("")
        lines.append(f"[{category}]")
        for descriptor in sorted(grouped[category], key=lambda d: d.name):
            entry = f"{prefix}{descriptor.name}"
            if descriptor.aliases:
                entry += f" ({', '.join(sorted(descriptor.aliases))})"
            if descriptor.description:
                entry += f" - {descriptor.description}"
            lines.append(entry)
    return "\n".join(lines)


def format_stats(stats: CommandStats) -> str:
    snapshot = stats.snapshot()
    if not snapshot:
        return "No commands have been used yet."
    lines = ["Command usage:"]
    for name in sorted(snapshot, key=lambda n: (-sum(snapshot[n].values()), n)):
        counts = snapshot[name]
        detail = ", ".join(f"{status}={count}" for status, count in sorted(counts.items()))
        lines.append(f"{name}: {sum(counts.values())} ({detail})")
    return "\n".join(lines)


def builtin_descriptors(
    *,
    transport: MessageTransport,
    registry: CommandRegistry,
    stats: CommandStats,
    monotonic: Optional[Callable[[], float]] = None,
) -> tuple[CommandDescriptor, ...]:
    clock = monotonic or time.monotonic
    started = clock()

    async def ping(ctx: DispatchContext) -> str:
        uptime = int(clock() - started)
        text = f"Pong! Uptime {uptime}s."
        await transport.send_reply(ctx.chat_id, text)
        return text

    async def menu(ctx: DispatchContext) -> str:
        text = format_menu(registry, role=ctx.role, prefix=ctx.prefix)
        await transport.send_reply(ctx.chat_id, text)
        return text

    async def usage(ctx: DispatchContext) -> str:
        text = format_stats(stats)
        await transport.send_reply(ctx.chat_id, text)
        return text

    return (
        CommandDescriptor(
            name="ping",
            aliases=frozenset({"alive"}),
            handler=ping,
            description="Check that the bot is responding",
            category="general",
        ),
        CommandDescriptor(
            name="menu",
            aliases=frozenset({"help", "commands"}),
            handler=menu,
            description="List the commands you can use",
            category="general",
        ),
        CommandDescriptor(
            name="stats",
            handler=usage,
            required_role=Role.ADMIN,
            description="Show command usage counters",
            category="owner",
            rate_limited=False,
        ),
    )
