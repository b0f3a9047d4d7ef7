"""Sender role resolution (owner / sudo admin / group admin / everyone)."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from ...core.logging_utils import log_event
from ...core.retry import retry_transient

WHATSAPP_GROUP_SUFFIX = "@g.us"


class Role(IntEnum):
    EVERYONE = 0
    ADMIN = 1
    OWNER = 2


@runtime_checkable
class GroupMetadataProvider(Protocol):
    async def get_admins(self, chat_id: str) -> set[str]:
        """Return subject ids holding admin/superadmin in ``chat_id``."""


@runtime_checkable
class SudoListProvider(Protocol):
    async def list(self) -> set[str]:
        """Return subject ids granted elevated privileges."""


def is_group_chat(chat_id: str) -> bool:
    return str(chat_id or "").endswith(WHATSAPP_GROUP_SUFFIX)


class PermissionResolver:
    """Computes a sender's effective role for a chat.

    ``role_of`` never raises: provider failures are logged and the role that
    was already established is returned.
    """

    def __init__(
        self,
        owner_ids: Iterable[str],
        *,
        sudo_list: SudoListProvider,
        group_metadata: Optional[GroupMetadataProvider] = None,
        is_group: Optional[Callable[[str], bool]] = None,
        lookup_attempts: int = 2,
        lookup_base_wait: float = 0.2,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._owner_ids = frozenset(
            token for token in (str(item).strip() for item in owner_ids) if token
        )
        self._sudo_list = sudo_list
        self._group_metadata = group_metadata
        self._is_group = is_group or is_group_chat
        self._logger = logger or logging.getLogger(__name__)
        retrying = retry_transient(
            max_attempts=lookup_attempts, base_wait=lookup_base_wait
        )
        self._fetch_sudo = retrying(self._fetch_sudo_once)
        self._fetch_admins = retrying(self._fetch_admins_once)

    @property
    def owner_ids(self) -> frozenset[str]:
        return self._owner_ids

    def is_owner(self, subject_id: str) -> bool:
        return subject_id in self._owner_ids

    async def role_of(self, subject_id: str, chat_id: str) -> Role:
        if self.is_owner(subject_id):
            return Role.OWNER
        role = Role.EVERYONE

        try:
            sudoers = await self._fetch_sudo()
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.permissions.sudo_failed",
                subject_id=subject_id,
                exc=exc,
            )
        else:
            if subject_id in sudoers:
                return Role.ADMIN

        if self._group_metadata is None or not self._is_group(chat_id):
            return role
        try:
            admins = await self._fetch_admins(chat_id)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.permissions.group_failed",
                subject_id=subject_id,
                chat_id=chat_id,
                exc=exc,
            )
            return role
        if subject_id in admins:
            role = max(role, Role.ADMIN)
        return role

    async def _fetch_sudo_once(self) -> set[str]:
        return set(await self._sudo_list.list())

    async def _fetch_admins_once(self, chat_id: str) -> set[str]:
        assert self._group_metadata is not None
        return set(await self._group_metadata.get_admins(chat_id))
