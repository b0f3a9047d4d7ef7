from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from chat_dispatch.cli import app
from chat_dispatch.core.config import CONFIG_FILENAME

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    for suffix in (
        "PREFIX",
        "OWNERS",
        "WINDOW_MS",
        "MAX_REQUESTS",
        "DEDUPE_TTL_MS",
        "HANDLER_TIMEOUT_MS",
    ):
        monkeypatch.delenv(f"CHAT_DISPATCH_{suffix}", raising=False)
    yield
    logger = logging.getLogger("chat_dispatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _write_config(root: Path, **data) -> None:
    (root / CONFIG_FILENAME).write_text(yaml.safe_dump(data), encoding="utf-8")


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("chat-dispatch ")


def test_commands_lists_builtins(tmp_path: Path) -> None:
    _write_config(tmp_path, prefix="!")
    result = runner.invoke(app, ["commands", "--path", str(tmp_path)])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith("!ping\teveryone\talive\t")
    assert any(line.startswith("!stats\tadmin\t-\t") for line in lines)


def test_dispatch_ping(tmp_path: Path) -> None:
    result = runner.invoke(app, ["dispatch", ".ping", "--path", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "[console] Pong! Uptime" in result.output
    assert "status: completed ping (ok)" in result.output
    assert (tmp_path / ".chat-dispatch" / "dispatch.log").exists()


def test_dispatch_denied_for_non_admin(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["dispatch", ".stats", "--user", "u2", "--path", str(tmp_path)]
    )

    assert result.exit_code == 0, result.output
    assert "You do not have permission to use this command." in result.output
    assert "status: denied stats (permission_denied)" in result.output


def test_dispatch_plain_text_is_ignored(tmp_path: Path) -> None:
    result = runner.invoke(app, ["dispatch", "hello", "--path", str(tmp_path)])
    assert "status: ignored (not_command)" in result.output


def test_console_reads_stdin(tmp_path: Path) -> None:
    _write_config(tmp_path, owners=["me"])
    result = runner.invoke(
        app,
        ["console", "--user", "me", "--path", str(tmp_path)],
        input=".ping\n\nhello\n.stats\n",
    )

    assert result.exit_code == 0, result.output
    statuses = [line for line in result.output.splitlines() if line.startswith("status:")]
    assert statuses == [
        "status: completed ping (ok)",
        "status: ignored (not_command)",
        "status: completed stats (ok)",
    ]


def test_sudo_add_list_remove(tmp_path: Path) -> None:
    _write_config(tmp_path, owners=["me"])
    args = ["--path", str(tmp_path)]

    assert runner.invoke(app, ["sudo", "list", *args]).output.strip() == "No sudo users."
    assert "Added u1" in runner.invoke(app, ["sudo", "add", "u1", *args]).output
    assert "u1 is already sudo" in runner.invoke(app, ["sudo", "add", "u1", *args]).output
    assert runner.invoke(app, ["sudo", "list", *args]).output.strip() == "u1"

    stored = json.loads((tmp_path / ".chat-dispatch" / "sudo.json").read_text(encoding="utf-8"))
    assert stored == {"sudo": ["u1"]}

    assert "Removed u1" in runner.invoke(app, ["sudo", "remove", "u1", *args]).output
    assert "u1 is not sudo" in runner.invoke(app, ["sudo", "remove", "u1", *args]).output


def test_sudo_refuses_owner(tmp_path: Path) -> None:
    _write_config(tmp_path, owners=["me"])
    result = runner.invoke(app, ["sudo", "add", "me", "--path", str(tmp_path)])
    assert result.exit_code == 1


def test_sudo_user_can_run_admin_command(tmp_path: Path) -> None:
    runner.invoke(app, ["sudo", "add", "u1", "--path", str(tmp_path)])
    result = runner.invoke(
        app, ["dispatch", ".stats", "--user", "u1", "--path", str(tmp_path)]
    )
    assert "status: completed stats (ok)" in result.output


def test_invalid_config_exits_with_message(tmp_path: Path) -> None:
    _write_config(tmp_path, max_requests=0)
    result = runner.invoke(app, ["commands", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
