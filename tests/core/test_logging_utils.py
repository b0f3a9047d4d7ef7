from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from chat_dispatch.core.config import LogConfig
from chat_dispatch.core.logging_utils import log_event, setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("chat_dispatch")
    original_handlers = list(logger.handlers)
    original_level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in original_handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(original_level)


def test_log_event_emits_json(caplog) -> None:
    logger = logging.getLogger("chat_dispatch.test.events")
    with caplog.at_level(logging.INFO, logger="chat_dispatch.test.events"):
        log_event(
            logger,
            logging.INFO,
            "chat.dispatch.denied",
            command="ban",
            roles={"EVERYONE", "ADMIN"} - {"ADMIN"},
            path=Path("/tmp/x"),
            exc=ValueError("nope"),
        )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {
        "event": "chat.dispatch.denied",
        "command": "ban",
        "roles": ["EVERYONE"],
        "path": "/tmp/x",
        "error": "nope",
        "error_type": "ValueError",
    }


def test_log_event_skips_disabled_levels(caplog) -> None:
    logger = logging.getLogger("chat_dispatch.test.quiet")
    with caplog.at_level(logging.WARNING, logger="chat_dispatch.test.quiet"):
        log_event(logger, logging.DEBUG, "chat.dispatch.received")
    assert caplog.records == []


def test_setup_logging_writes_file_and_replaces_handlers(
    tmp_path: Path, package_logger: logging.Logger
) -> None:
    config = LogConfig(
        path=tmp_path / "logs" / "dispatch.log",
        level=logging.INFO,
        max_bytes=1024,
        backup_count=1,
    )

    setup_logging(config, stream=False)
    setup_logging(config, stream=False)
    log_event(
        logging.getLogger("chat_dispatch.integrations.chat.dispatcher"),
        logging.INFO,
        "chat.dispatch.handler.done",
        command="ping",
    )
    for handler in package_logger.handlers:
        handler.flush()

    file_handlers = [
        h for h in package_logger.handlers if isinstance(h, RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    text = config.path.read_text(encoding="utf-8")
    assert text.count("chat.dispatch.handler.done") == 1
