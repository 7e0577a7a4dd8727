from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from backend.repurposer.config import load_settings
from backend.repurposer.logging_config import (
    apply_stage_levels,
    compact_request_context,
    configure_application_logging,
    parse_stage_levels,
)


@pytest.fixture
def configured_loggers() -> Iterator[None]:
    yield
    for name in ("repurposer", "repurposer.telemetry"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    apply_stage_levels(None)


def _read_json_lines(logger: logging.Logger, path: Path) -> list[dict[str, object]]:
    for handler in logger.handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_stage_levels_and_rotation_come_from_settings(
    monkeypatch: pytest.MonkeyPatch,
    configured_loggers: None,
) -> None:
    monkeypatch.setenv("REPURPOSER_LOG_STAGE_LEVELS", "fetcher=debug, llm=WARNING, extractor=LOUD")
    monkeypatch.setenv("REPURPOSER_LOG_FILE_MAX_BYTES", "4096")
    monkeypatch.setenv("REPURPOSER_LOG_FILE_BACKUP_COUNT", "2")

    log_file = configure_application_logging(load_settings())

    root = logging.getLogger("repurposer")
    file_handlers = [handler for handler in root.handlers if isinstance(handler, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == 4096
    assert file_handlers[0].backupCount == 2
    assert logging.getLogger("repurposer.fetcher").level == logging.DEBUG
    assert logging.getLogger("repurposer.llm").level == logging.WARNING
    assert logging.getLogger("repurposer.extractor").level == logging.NOTSET
    assert logging.getLogger("readability.readability").level == logging.WARNING

    logging.getLogger("repurposer.fetcher").debug("fetch redirect status=%s", 302)
    logging.getLogger("repurposer.llm").info("llm call finished model=%s", "hidden")

    events = _read_json_lines(root, log_file)
    assert events[-1]["event"] == "fetch redirect status=302"
    assert events[-1]["logger"] == "repurposer.fetcher"
    assert events[-1]["level"] == "debug"
    assert all("llm call finished" not in str(event["event"]) for event in events)


def test_log_file_rotates_at_the_configured_size(
    monkeypatch: pytest.MonkeyPatch,
    configured_loggers: None,
) -> None:
    monkeypatch.setenv("REPURPOSER_LOG_FILE_MAX_BYTES", "1024")
    monkeypatch.setenv("REPURPOSER_LOG_FILE_BACKUP_COUNT", "1")

    log_file = configure_application_logging(load_settings())
    pipeline_logger = logging.getLogger("repurposer.pipeline")
    for index in range(40):
        pipeline_logger.info("pipeline stage finished stage=fetch attempt=%s", index)

    assert log_file.exists()
    assert log_file.with_name(f"{log_file.name}.1").exists()
    assert not log_file.with_name(f"{log_file.name}.2").exists()


def test_parse_stage_levels_skips_unknown_stages_and_levels() -> None:
    assert parse_stage_levels(None) == {}
    assert parse_stage_levels("fetcher=INFO,,db=DEBUG,llm,generation=nope,API=error") == {
        "fetcher": logging.INFO,
        "api": logging.ERROR,
    }


def test_console_context_is_compacted() -> None:
    event_dict = compact_request_context(
        None,
        "info",
        {
            "event": "repurpose request finished",
            "http_request_id": "0123456789abcdef",
            "http_method": "POST",
            "http_path": "/api/repurpose",
            "repurpose_url": "https://example.com/" + "a" * 100,
        },
    )

    assert event_dict["request_id"] == "01234567"
    assert str(event_dict["url"]).endswith("...")
    assert len(str(event_dict["url"])) == 80
    assert "http_method" not in event_dict
    assert "http_path" not in event_dict
    assert "repurpose_url" not in event_dict


def test_console_context_leaves_unbound_events_alone() -> None:
    assert compact_request_context(None, "info", {"event": "startup"}) == {"event": "startup"}
