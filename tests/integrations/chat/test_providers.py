from __future__ import annotations

import pytest

from chat_dispatch.integrations.chat.errors import AllProvidersFailedError
from chat_dispatch.integrations.chat.providers import (
    FallbackGroupMetadataProvider,
    first_success,
)
from chat_dispatch.integrations.chat.testing import StaticGroupMetadata


@pytest.mark.anyio
async def test_first_success_stops_at_first_result() -> None:
    calls: list[str] = []

    async def failing() -> str:
        calls.append("failing")
        raise RuntimeError("endpoint down")

    async def working() -> str:
        calls.append("working")
        return "answer"

    async def never() -> str:
        calls.append("never")
        return "unused"

    assert await first_success([failing, working, never]) == "answer"
    assert calls == ["failing", "working"]


@pytest.mark.anyio
async def test_first_success_collects_every_failure() -> None:
    async def first() -> str:
        raise RuntimeError("one")

    async def second() -> str:
        raise ValueError("two")

    with pytest.raises(AllProvidersFailedError) as excinfo:
        await first_success([first, second], label="gpt")

    assert [str(exc) for exc in excinfo.value.failures] == ["one", "two"]
    assert "gpt" in str(excinfo.value)
    assert excinfo.value.recoverable is True


@pytest.mark.anyio
async def test_first_success_with_no_attempts_fails() -> None:
    with pytest.raises(AllProvidersFailedError):
        await first_success([])


@pytest.mark.anyio
async def test_fallback_group_metadata_uses_next_provider() -> None:
    broken = StaticGroupMetadata(fail_with=RuntimeError("offline"))
    backup = StaticGroupMetadata({"g@g.us": {"u1"}})
    provider = FallbackGroupMetadataProvider([broken, backup])

    assert await provider.get_admins("g@g.us") == {"u1"}
    assert broken.calls == ["g@g.us"]
    assert backup.calls == ["g@g.us"]
