"""Command descriptors and the name/alias lookup table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .errors import DuplicateCommandError
from .permissions import Role

CommandHandler = Callable[[Any], Union[Awaitable[Any], Any]]


def _normalize_token(value: str, *, what: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{what} must be a string")
    token = value.strip().lower()
    if not token:
        raise ValueError(f"{what} must be non-empty")
    if any(ch.isspace() for ch in token):
        raise ValueError(f"{what} must not contain whitespace: {value!r}")
    return token


@dataclass(frozen=True)
class CommandDescriptor:
    """Immutable registration record for one command."""

    name: str
    handler: CommandHandler
    aliases: frozenset[str] = field(default_factory=frozenset)
    required_role: Role = Role.EVERYONE
    description: str = ""
    category: str = "general"
    timeout_ms: Optional[int] = None
    rate_limited: bool = True
    window_ms: Optional[int] = None
    max_requests: Optional[int] = None

    def __post_init__(self) -> None:
        name = _normalize_token(self.name, what="command name")
        if isinstance(self.aliases, str):
            raise TypeError("aliases must be an iterable of strings, not a string")
        aliases = frozenset(
            _normalize_token(alias, what="command alias") for alias in self.aliases
        )
        if name in aliases:
            raise ValueError(f"command {name!r} lists itself as an alias")
        if not callable(self.handler):
            raise TypeError(f"handler for command {name!r} must be callable")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms for command {name!r} must be > 0")
        for key in ("window_ms", "max_requests"):
            value = getattr(self, key)
            if value is not None and value <= 0:
                raise ValueError(f"{key} for command {name!r} must be > 0")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "aliases", aliases)
        object.__setattr__(self, "required_role", Role(self.required_role))

    @property
    def tokens(self) -> frozenset[str]:
        return self.aliases | {self.name}


class CommandRegistry:
    """Maps command names and aliases to descriptors.

    Names and aliases share one namespace: a token may be claimed once.
    """

    def __init__(self, descriptors: Iterable[CommandDescriptor] = ()) -> None:
        self._by_name: dict[str, CommandDescriptor] = {}
        self._by_alias: dict[str, CommandDescriptor] = {}
        self.register_all(descriptors)

    def register(self, descriptor: CommandDescriptor) -> None:
        self._check_available(descriptor, pending={})
        self._by_name[descriptor.name] = descriptor
        for alias in descriptor.aliases:
            self._by_alias[alias] = descriptor

    def register_all(self, descriptors: Iterable[CommandDescriptor]) -> None:
        """Register a batch; on any collision nothing from the batch is kept."""
        batch = list(descriptors)
        pending: dict[str, str] = {}
        for descriptor in batch:
            self._check_available(descriptor, pending=pending)
            for token in descriptor.tokens:
                pending[token] = descriptor.name
        for descriptor in batch:
            self._by_name[descriptor.name] = descriptor
            for alias in descriptor.aliases:
                self._by_alias[alias] = descriptor

    def resolve(self, token: str) -> Optional[CommandDescriptor]:
        key = str(token or "").strip().lower()
        if not key:
            return None
        descriptor = self._by_name.get(key)
        if descriptor is not None:
            return descriptor
        return self._by_alias.get(key)

    def descriptors(self) -> tuple[CommandDescriptor, ...]:
        return tuple(self._by_name.values())

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.resolve(token) is not None

    def __len__(self) -> int:
        return len(self._by_name)

    def _check_available(
        self, descriptor: CommandDescriptor, *, pending: dict[str, str]
    ) -> None:
        for token in sorted(descriptor.tokens):
            owner = self._claimed_by(token) or pending.get(token)
            if owner is not None:
                raise DuplicateCommandError(token, claimed_by=owner)

    def _claimed_by(self, token: str) -> Optional[str]:
        existing = self._by_name.get(token) or self._by_alias.get(token)
        return existing.name if existing is not None else None
