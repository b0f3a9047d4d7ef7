"""Command dispatch, permissions, rate limiting and de-duplication."""

from .command_parsing import ParsedCommand, parse_prefixed_command
from .command_registry import CommandDescriptor, CommandRegistry
from .dedupe import DeduplicationCache
from .dispatcher import (
    CommandDispatcher,
    DispatchContext,
    DispatchOutcome,
    DispatchStatus,
    build_dispatcher,
)
from .errors import (
    AllProvidersFailedError,
    DispatchError,
    DuplicateCommandError,
    DuplicateEvent,
    HandlerError,
    HandlerTimeout,
    PermissionDenied,
    RateLimited,
    UnknownCommand,
)
from .models import InboundEvent, fingerprint_text
from .permissions import (
    GroupMetadataProvider,
    PermissionResolver,
    Role,
    SudoListProvider,
)
from .providers import FallbackGroupMetadataProvider, first_success
from .rate_limit import RateLimitKey, SlidingWindowLimiter
from .transport import MessageTransport

__all__ = [
    "AllProvidersFailedError",
    "CommandDescriptor",
    "CommandDispatcher",
    "CommandRegistry",
    "DeduplicationCache",
    "DispatchContext",
    "DispatchError",
    "DispatchOutcome",
    "DispatchStatus",
    "DuplicateCommandError",
    "DuplicateEvent",
    "FallbackGroupMetadataProvider",
    "GroupMetadataProvider",
    "HandlerError",
    "HandlerTimeout",
    "InboundEvent",
    "MessageTransport",
    "ParsedCommand",
    "PermissionDenied",
    "PermissionResolver",
    "RateLimitKey",
    "RateLimited",
    "Role",
    "SlidingWindowLimiter",
    "SudoListProvider",
    "UnknownCommand",
    "build_dispatcher",
    "fingerprint_text",
    "first_success",
    "parse_prefixed_command",
]
