from __future__ import annotations

import pytest

from chat_dispatch.integrations.chat.dedupe import DeduplicationCache
from chat_dispatch.integrations.chat.models import InboundEvent, fingerprint_text


def test_seen_is_true_then_false_within_ttl() -> None:
    cache = DeduplicationCache(ttl_ms=300_000)
    assert cache.seen("abc", "xyz", 1_000) is True
    assert cache.seen("abc", "xyz", 1_000) is False
    assert cache.seen("abc", "xyz", 1_000 + 299_999) is False


def test_seen_accepts_again_after_ttl_elapses() -> None:
    cache = DeduplicationCache(ttl_ms=300_000)
    assert cache.seen("abc", "xyz", 0) is True
    assert cache.seen("abc", "xyz", 300_000) is True
    assert cache.seen("abc", "xyz", 300_001) is False


def test_fingerprint_is_part_of_the_key() -> None:
    cache = DeduplicationCache(ttl_ms=1_000)
    assert cache.seen("abc", "one", 0) is True
    assert cache.seen("abc", "two", 0) is True
    assert cache.seen("other", "one", 0) is True


def test_sweep_evicts_expired_entries() -> None:
    cache = DeduplicationCache(ttl_ms=1_000)
    cache.seen("a", "f", 0)
    cache.seen("b", "f", 800)
    assert cache.sweep(1_000) == 1
    assert len(cache) == 1
    assert cache.sweep(1_800) == 1
    assert len(cache) == 0


def test_invalid_ttl_is_rejected() -> None:
    with pytest.raises(ValueError):
        DeduplicationCache(ttl_ms=0)


def test_fingerprint_ignores_whitespace_differences() -> None:
    assert fingerprint_text(".ping  now ") == fingerprint_text(".ping now")
    assert fingerprint_text(".ping") != fingerprint_text(".pong")


def test_event_prefers_adapter_supplied_fingerprint() -> None:
    explicit = InboundEvent(
        event_id="e1", chat_id="c", subject_id="u", text=".ping", fingerprint="xyz"
    )
    derived = InboundEvent(event_id="e1", chat_id="c", subject_id="u", text=".ping")
    assert explicit.effective_fingerprint == "xyz"
    assert derived.effective_fingerprint == fingerprint_text(".ping")
