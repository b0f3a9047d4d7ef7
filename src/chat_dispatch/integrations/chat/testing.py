"""In-memory fakes for exercising the dispatcher without a chat platform."""

from __future__ import annotations

from typing import Iterable, Optional


class ManualClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, delta_ms: int) -> None:
        self._now_ms += delta_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms


class RecordingTransport:
    """Collects replies; optionally fails every send."""

    def __init__(self, *, fail_with: Optional[BaseException] = None) -> None:
        self.replies: list[tuple[str, str]] = []
        self._fail_with = fail_with

    async def send_reply(self, chat_id: str, content: str) -> None:
        if self._fail_with is not None:
            raise self._fail_with
        self.replies.append((chat_id, content))

    def texts_for(self, chat_id: str) -> list[str]:
        return [content for target, content in self.replies if target == chat_id]


class StaticSudoList:
    def __init__(
        self,
        subject_ids: Iterable[str] = (),
        *,
        fail_with: Optional[BaseException] = None,
    ) -> None:
        self.subject_ids = set(subject_ids)
        self.calls = 0
        self._fail_with = fail_with

    async def list(self) -> set[str]:
        self.calls += 1
        if self._fail_with is not None:
            raise self._fail_with
        return set(self.subject_ids)


class StaticGroupMetadata:
    def __init__(
        self,
        admins_by_chat: Optional[dict[str, Iterable[str]]] = None,
        *,
        fail_with: Optional[BaseException] = None,
    ) -> None:
        self.admins_by_chat = {
            chat_id: set(admins) for chat_id, admins in (admins_by_chat or {}).items()
        }
        self.calls: list[str] = []
        self._fail_with = fail_with

    async def get_admins(self, chat_id: str) -> set[str]:
        self.calls.append(chat_id)
        if self._fail_with is not None:
            raise self._fail_with
        return set(self.admins_by_chat.get(chat_id, set()))
