"""Command dispatcher: parse, resolve, authorize, admit, execute, report.

Every inbound event ends in exactly one ``DispatchOutcome``. The dispatcher is
the single recovery point: nothing raised by a handler, a permission provider
or the transport escapes ``dispatch`` (caller cancellation excepted).
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from ...core.config import DispatchConfig
from ...core.logging_utils import log_event
from ...core.time_utils import Clock, SystemClock
from .command_parsing import parse_prefixed_command
from .command_registry import CommandDescriptor, CommandRegistry
from .dedupe import DeduplicationCache
from .errors import (
    DispatchError,
    DuplicateEvent,
    HandlerError,
    HandlerTimeout,
    PermissionDenied,
    RateLimited,
    UnknownCommand,
)
from .models import InboundEvent
from .permissions import (
    GroupMetadataProvider,
    PermissionResolver,
    Role,
    SudoListProvider,
)
from .rate_limit import RateLimitKey, SlidingWindowLimiter
from .replies import ReplyCatalog
from .stats import CommandStats
from .sudo_store import JsonSudoListStore
from .transport import MessageTransport


class DispatchStatus(str, Enum):
    IGNORED = "ignored"
    DENIED = "denied"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchContext:
    """Per-event data handed to a command handler."""

    event_id: str
    raw_text: str
    prefix: str
    command_name: str
    argument_string: str
    subject_id: str
    chat_id: str
    timestamp_ms: int
    role: Role = Role.EVERYONE

    @property
    def args(self) -> tuple[str, ...]:
        return tuple(self.argument_string.split())


@dataclass(frozen=True)
class DispatchOutcome:
    status: DispatchStatus
    reason: str
    command: Optional[str] = None
    context: Optional[DispatchContext] = None
    result: Any = None
    error: Optional[DispatchError] = None
    elapsed_ms: int = 0


class CommandDispatcher:
    """Routes inbound chat events to registered command handlers."""

    def __init__(
        self,
        config: DispatchConfig,
        *,
        transport: MessageTransport,
        permissions: PermissionResolver,
        registry: Optional[CommandRegistry] = None,
        limiter: Optional[SlidingWindowLimiter] = None,
        dedupe: Optional[DeduplicationCache] = None,
        clock: Optional[Clock] = None,
        replies: Optional[ReplyCatalog] = None,
        stats: Optional[CommandStats] = None,
        logger: Optional[logging.Logger] = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._transport = transport
        self._permissions = permissions
        self._registry = registry if registry is not None else CommandRegistry()
        self._limiter = (
            limiter
            if limiter is not None
            else SlidingWindowLimiter(
                window_ms=config.window_ms, max_requests=config.max_requests
            )
        )
        self._dedupe = (
            dedupe if dedupe is not None else DeduplicationCache(ttl_ms=config.dedupe_ttl_ms)
        )
        self._command_limiters: dict[str, SlidingWindowLimiter] = {}
        self._clock = clock or SystemClock()
        self._replies = replies or ReplyCatalog()
        self._stats = stats if stats is not None else CommandStats()
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep_fn
        self._sweep_task: Optional[asyncio.Task[None]] = None

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def stats(self) -> CommandStats:
        return self._stats

    @property
    def config(self) -> DispatchConfig:
        return self._config

    def register_command(self, descriptor: CommandDescriptor) -> None:
        self._registry.register(descriptor)

    def register_commands(self, descriptors: Iterable[CommandDescriptor]) -> None:
        self._registry.register_all(descriptors)

    async def dispatch(self, event: InboundEvent) -> DispatchOutcome:
        now_ms = self._clock.now_ms()
        log_event(
            self._logger,
            logging.DEBUG,
            "chat.dispatch.received",
            event_id=event.event_id,
            chat_id=event.chat_id,
            subject_id=event.subject_id,
        )

        parsed = parse_prefixed_command(event.text, prefixes=self._config.prefixes)
        if parsed is None:
            return DispatchOutcome(status=DispatchStatus.IGNORED, reason="not_command")

        descriptor = self._registry.resolve(parsed.name)
        if descriptor is None:
            log_event(
                self._logger,
                logging.DEBUG,
                "chat.dispatch.ignored",
                event_id=event.event_id,
                token=parsed.name,
            )
            return DispatchOutcome(
                status=DispatchStatus.IGNORED,
                reason="unknown_command",
                error=UnknownCommand(f"unknown command {parsed.name!r}"),
            )

        context = DispatchContext(
            event_id=event.event_id,
            raw_text=parsed.raw,
            prefix=parsed.prefix,
            command_name=descriptor.name,
            argument_string=parsed.args,
            subject_id=event.subject_id,
            chat_id=event.chat_id,
            timestamp_ms=event.timestamp_ms if event.timestamp_ms is not None else now_ms,
        )

        role = await self._resolve_role(context)
        context = dataclasses.replace(context, role=role)
        if role < descriptor.required_role:
            error = PermissionDenied(
                f"{descriptor.name} requires {descriptor.required_role.name}, "
                f"subject has {role.name}",
                user_message=self._replies.permission_denied(),
            )
            log_event(
                self._logger,
                logging.INFO,
                "chat.dispatch.denied",
                event_id=event.event_id,
                command=descriptor.name,
                subject_id=event.subject_id,
                role=role.name,
                required_role=descriptor.required_role.name,
            )
            self._stats.record(descriptor.name, DispatchStatus.DENIED.value)
            await self._send_notice(context, error)
            return DispatchOutcome(
                status=DispatchStatus.DENIED,
                reason=error.kind,
                command=descriptor.name,
                context=context,
                error=error,
            )

        now_ms = self._clock.now_ms()
        if not self._dedupe.seen(event.event_id, event.effective_fingerprint, now_ms):
            log_event(
                self._logger,
                logging.INFO,
                "chat.dispatch.duplicate",
                event_id=event.event_id,
                command=descriptor.name,
            )
            return DispatchOutcome(
                status=DispatchStatus.IGNORED,
                reason="duplicate",
                command=descriptor.name,
                context=context,
                error=DuplicateEvent(f"event {event.event_id!r} already seen"),
            )

        if descriptor.rate_limited:
            key = RateLimitKey(subject_id=event.subject_id, command_name=descriptor.name)
            limiter = self._limiter_for(descriptor)
            if not limiter.admit(key, now_ms):
                retry_after_ms = limiter.retry_after_ms(key, now_ms)
                error = RateLimited(
                    f"{event.subject_id} exceeded {descriptor.name} quota",
                    retry_after_ms=retry_after_ms,
                    user_message=self._replies.rate_limited(retry_after_ms),
                )
                log_event(
                    self._logger,
                    logging.INFO,
                    "chat.dispatch.rate_limited",
                    event_id=event.event_id,
                    command=descriptor.name,
                    subject_id=event.subject_id,
                    retry_after_ms=retry_after_ms,
                )
                self._stats.record(descriptor.name, DispatchStatus.REJECTED.value)
                await self._send_notice(context, error)
                return DispatchOutcome(
                    status=DispatchStatus.REJECTED,
                    reason=error.kind,
                    command=descriptor.name,
                    context=context,
                    error=error,
                )

        return await self._execute(descriptor, context)

    def _limiter_for(self, descriptor: CommandDescriptor) -> SlidingWindowLimiter:
        if descriptor.window_ms is None and descriptor.max_requests is None:
            return self._limiter
        limiter = self._command_limiters.get(descriptor.name)
        if limiter is None:
            limiter = SlidingWindowLimiter(
                window_ms=descriptor.window_ms or self._limiter.window_ms,
                max_requests=descriptor.max_requests or self._limiter.max_requests,
            )
            self._command_limiters[descriptor.name] = limiter
        return limiter

    async def _resolve_role(self, context: DispatchContext) -> Role:
        try:
            return await self._permissions.role_of(context.subject_id, context.chat_id)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.dispatch.role_failed",
                event_id=context.event_id,
                subject_id=context.subject_id,
                exc=exc,
            )
            return Role.EVERYONE

    async def _execute(
        self, descriptor: CommandDescriptor, context: DispatchContext
    ) -> DispatchOutcome:
        timeout_ms = descriptor.timeout_ms or self._config.handler_timeout_ms
        log_event(
            self._logger,
            logging.INFO,
            "chat.dispatch.handler.start",
            event_id=context.event_id,
            command=descriptor.name,
            subject_id=context.subject_id,
        )
        started = time.monotonic()
        error: Optional[DispatchError] = None
        result: Any = None
        try:
            result = await asyncio.wait_for(
                _invoke(descriptor, context), timeout=timeout_ms / 1000
            )
        except _HandlerRaised as raised:
            exc = raised.original
            error = HandlerError(
                f"{descriptor.name} raised {type(exc).__name__}",
                user_message=self._replies.handler_failed(),
            )
            error.__cause__ = exc
            log_event(
                self._logger,
                logging.ERROR,
                "chat.dispatch.handler.failed",
                event_id=context.event_id,
                command=descriptor.name,
                subject_id=context.subject_id,
                chat_id=context.chat_id,
                elapsed_ms=_elapsed_ms(started),
                exc=exc,
                exc_info=True,
            )
        except asyncio.TimeoutError:
            elapsed_ms = _elapsed_ms(started)
            error = HandlerTimeout(
                f"{descriptor.name} exceeded {timeout_ms}ms",
                elapsed_ms=elapsed_ms,
                user_message=self._replies.timed_out(),
            )
            log_event(
                self._logger,
                logging.WARNING,
                "chat.dispatch.handler.timeout",
                event_id=context.event_id,
                command=descriptor.name,
                timeout_ms=timeout_ms,
                elapsed_ms=elapsed_ms,
            )
        elapsed_ms = _elapsed_ms(started)

        if error is not None:
            self._stats.record(descriptor.name, DispatchStatus.FAILED.value)
            await self._send_notice(context, error)
            return DispatchOutcome(
                status=DispatchStatus.FAILED,
                reason=error.kind,
                command=descriptor.name,
                context=context,
                error=error,
                elapsed_ms=elapsed_ms,
            )

        self._stats.record(descriptor.name, DispatchStatus.COMPLETED.value)
        log_event(
            self._logger,
            logging.INFO,
            "chat.dispatch.handler.done",
            event_id=context.event_id,
            command=descriptor.name,
            elapsed_ms=elapsed_ms,
        )
        return DispatchOutcome(
            status=DispatchStatus.COMPLETED,
            reason="ok",
            command=descriptor.name,
            context=context,
            result=result,
            elapsed_ms=elapsed_ms,
        )

    async def _send_notice(self, context: DispatchContext, error: DispatchError) -> None:
        if not error.user_message:
            return
        try:
            await self._transport.send_reply(context.chat_id, error.user_message)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.dispatch.reply_failed",
                event_id=context.event_id,
                chat_id=context.chat_id,
                kind=error.kind,
                exc=exc,
            )

    def sweep_once(self) -> tuple[int, int]:
        """Evict idle limiter keys and expired dedupe entries."""
        now_ms = self._clock.now_ms()
        limiter_removed = self._limiter.sweep(now_ms)
        for limiter in self._command_limiters.values():
            limiter_removed += limiter.sweep(now_ms)
        dedupe_removed = self._dedupe.sweep(now_ms)
        log_event(
            self._logger,
            logging.DEBUG,
            "chat.dispatch.sweep",
            limiter_removed=limiter_removed,
            dedupe_removed=dedupe_removed,
            limiter_keys=len(self._limiter),
            dedupe_entries=len(self._dedupe),
        )
        return limiter_removed, dedupe_removed

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "CommandDispatcher":
        self.start()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def _sweep_loop(self) -> None:
        while True:
            await self._sleep(self._config.sweep_interval_seconds)
            self.sweep_once()


class _HandlerRaised(Exception):
    """Carries a handler exception past ``wait_for`` so it is not read as a deadline."""

    def __init__(self, original: Exception) -> None:
        super().__init__(str(original))
        self.original = original


async def _invoke(descriptor: CommandDescriptor, context: DispatchContext) -> Any:
    try:
        result = descriptor.handler(context)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        raise _HandlerRaised(exc) from exc
    return result


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def build_dispatcher(
    config: DispatchConfig,
    *,
    transport: MessageTransport,
    sudo_list: Optional[SudoListProvider] = None,
    group_metadata: Optional[GroupMetadataProvider] = None,
    clock: Optional[Clock] = None,
    descriptors: Iterable[CommandDescriptor] = (),
    logger: Optional[logging.Logger] = None,
) -> CommandDispatcher:
    """Wire a dispatcher from config; the sudo list defaults to the JSON file."""

    permissions = PermissionResolver(
        config.owner_ids,
        sudo_list=(
            sudo_list
            if sudo_list is not None
            else JsonSudoListStore(config.sudo_file, owner_ids=config.owner_ids)
        ),
        group_metadata=group_metadata,
        lookup_attempts=config.permissions.lookup_attempts,
        lookup_base_wait=config.permissions.lookup_base_wait_seconds,
        logger=logger,
    )
    return CommandDispatcher(
        config,
        transport=transport,
        permissions=permissions,
        registry=CommandRegistry(descriptors),
        clock=clock,
        logger=logger,
    )
