"""Prefix-based command parsing for plain chat text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class ParsedCommand:
    """Command token split from chat text (``.ping some args``)."""

    prefix: str
    name: str
    args: str
    raw: str


def parse_prefixed_command(
    text: Optional[str], *, prefixes: Iterable[str]
) -> Optional[ParsedCommand]:
    """Return the parsed command, or ``None`` when ``text`` is plain chat.

    Longer prefixes are tried first so ``!!`` wins over ``!``. The command
    token is lower-cased; the argument string keeps its original casing and
    inner whitespace.
    """

    raw = str(text or "").strip()
    if not raw:
        return None
    ordered = sorted({p for p in prefixes if p}, key=len, reverse=True)
    prefix = next((p for p in ordered if raw.startswith(p)), None)
    if prefix is None:
        return None
    remainder = raw[len(prefix) :]
    if not remainder or remainder[0].isspace():
        return None
    parts = remainder.split(None, 1)
    name = parts[0].lower()
    args = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCommand(prefix=prefix, name=name, args=args, raw=raw)
