from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from chat_dispatch.core.config import (
    CONFIG_FILENAME,
    OVERRIDE_FILENAME,
    DispatchConfig,
    load_config,
)
from chat_dispatch.core.exceptions import ConfigError


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_defaults_without_files(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert config.root == tmp_path.resolve()
    assert config.prefix == "."
    assert config.prefixes == (".",)
    assert config.owner_ids == frozenset()
    assert config.window_ms == 60_000
    assert config.max_requests == 10
    assert config.dedupe_ttl_ms == 300_000
    assert config.handler_timeout_ms == 30_000
    assert config.sudo_file == tmp_path.resolve() / ".chat-dispatch" / "sudo.json"
    assert config.log.level == logging.INFO
    assert config.permissions.lookup_attempts == 2


def test_yaml_then_override_then_env(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / CONFIG_FILENAME,
        {
            "prefix": "!",
            "prefixes": [".", "!"],
            "owners": ["15550001", 15550002],
            "max_requests": 3,
            "log": {"level": "debug"},
        },
    )
    _write_yaml(tmp_path / OVERRIDE_FILENAME, {"max_requests": 4, "window_ms": 1000})

    config = load_config(
        tmp_path,
        environ={
            "CHAT_DISPATCH_WINDOW_MS": "2500",
            "CHAT_DISPATCH_OWNERS": "a, b,,",
        },
    )

    assert config.prefixes == ("!", ".")
    assert config.max_requests == 4
    assert config.window_ms == 2500
    assert config.owner_ids == frozenset({"a", "b"})
    assert config.log.level == logging.DEBUG


def test_blank_env_values_are_ignored(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={"CHAT_DISPATCH_MAX_REQUESTS": "  "})
    assert config.max_requests == 10


def test_dotenv_is_loaded_when_reading_process_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("CHAT_DISPATCH_PREFIX", raising=False)
    (tmp_path / ".env").write_text("CHAT_DISPATCH_PREFIX=~\n", encoding="utf-8")

    config = load_config(tmp_path)
    monkeypatch.delenv("CHAT_DISPATCH_PREFIX", raising=False)

    assert config.prefix == "~"


@pytest.mark.parametrize(
    "raw",
    [
        {"max_requests": 0},
        {"window_ms": -5},
        {"dedupe_ttl_ms": "soon"},
        {"handler_timeout_ms": True},
        {"prefix": ""},
        {"prefixes": ["a b"]},
        {"sudo_file": ""},
        {"log": {"level": "chatty"}},
        {"permissions": {"lookup_attempts": 0}},
    ],
)
def test_invalid_values_raise_config_error(tmp_path: Path, raw: dict) -> None:
    with pytest.raises(ConfigError):
        DispatchConfig.defaults(tmp_path, **raw)


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("prefix: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_non_mapping_override_names_the_file(tmp_path: Path) -> None:
    (tmp_path / OVERRIDE_FILENAME).write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="override"):
        load_config(tmp_path, environ={})


def test_invalid_env_value_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={"CHAT_DISPATCH_MAX_REQUESTS": "ten"})
