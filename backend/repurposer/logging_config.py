from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from backend.repurposer.config import AppSettings

LOG_FILE_NAME = "repurposer.log"
TELEMETRY_LOG_FILE_NAME = "repurposer-telemetry.log"
ROOT_LOGGER_NAME = "repurposer"

# One logger per pipeline stage; `log_stage_levels` addresses them by the short name.
PIPELINE_STAGES: tuple[str, ...] = ("api", "pipeline", "fetcher", "extractor", "generation", "llm")

# Libraries that log per request below WARNING and would drown the pipeline lines.
QUIET_LIBRARY_LOGGERS: tuple[str, ...] = ("readability.readability", "openai", "httpx", "httpcore")

CONSOLE_URL_CHARS = 80
CONSOLE_REQUEST_ID_CHARS = 8


def configure_application_logging(settings: AppSettings) -> Path:
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    telemetry_log_file = log_dir / TELEMETRY_LOG_FILE_NAME

    _configure_structlog()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    _reset_handlers(logger)

    file_handler = _rotating_file_handler(
        log_file,
        max_bytes=settings.log_file_max_bytes,
        backup_count=settings.log_file_backup_count,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(_build_file_formatter())

    console_stream = sys.stdout
    console_handler = logging.StreamHandler(stream=console_stream)
    console_handler.setLevel(_resolve_log_level(settings.log_level))
    console_handler.setFormatter(
        _build_console_formatter(enable_colors=_stream_supports_color(console_stream))
    )

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    stage_levels = apply_stage_levels(settings.log_stage_levels)
    _quiet_library_loggers()
    _configure_telemetry_logger(
        telemetry_log_file,
        max_bytes=settings.log_file_max_bytes,
        backup_count=settings.log_file_backup_count,
    )

    logger.info(
        (
            "logging configured console_level=%s stage_levels=%s environment=%s "
            "path=%s max_bytes=%s backups=%s telemetry_path=%s"
        ),
        settings.log_level.upper(),
        ",".join(f"{stage}={logging.getLevelName(level)}" for stage, level in stage_levels.items())
        or "default",
        settings.environment,
        log_file,
        settings.log_file_max_bytes,
        settings.log_file_backup_count,
        telemetry_log_file,
    )
    return log_file


def parse_stage_levels(raw: str | None) -> dict[str, int]:
    """Parse ``fetcher=DEBUG,llm=WARNING`` into ``{"fetcher": 10, "llm": 30}``.

    Unknown stages and unknown level names are skipped.
    """
    levels: dict[str, int] = {}
    if not raw:
        return levels
    for pair in raw.split(","):
        stage, separator, level_name = pair.partition("=")
        stage = stage.strip().lower()
        if not separator or stage not in PIPELINE_STAGES:
            continue
        level = _level_by_name(level_name)
        if level is not None:
            levels[stage] = level
    return levels


def apply_stage_levels(raw: str | None) -> dict[str, int]:
    levels = parse_stage_levels(raw)
    for stage in PIPELINE_STAGES:
        stage_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{stage}")
        stage_logger.setLevel(levels.get(stage, logging.NOTSET))
    return levels


def _resolve_log_level(raw_level: str) -> int:
    level = _level_by_name(raw_level)
    return logging.INFO if level is None else level


def _level_by_name(raw_level: str) -> int | None:
    resolved = getattr(logging, raw_level.strip().upper(), None)
    return resolved if isinstance(resolved, int) else None


def _quiet_library_loggers() -> None:
    for name in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _rotating_file_handler(path: Path, *, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    return RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _configure_telemetry_logger(log_file: Path, *, max_bytes: int, backup_count: int) -> None:
    # Child of "repurposer" that writes only to its own file.
    telemetry_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.telemetry")
    telemetry_logger.setLevel(logging.INFO)
    telemetry_logger.propagate = False
    _reset_handlers(telemetry_logger)

    telemetry_file_handler = _rotating_file_handler(
        log_file,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
    telemetry_file_handler.setLevel(logging.INFO)
    telemetry_file_handler.setFormatter(_build_file_formatter())
    telemetry_logger.addHandler(telemetry_file_handler)


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            compact_request_context,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            _add_record_metadata,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def compact_request_context(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Shorten the bound request fields for one-line console output.

    ``http_request_id`` becomes ``request_id`` (first 8 characters) and
    ``repurpose_url`` becomes ``url``, cut to 80 characters. Method and path stay
    in the file log only. The JSON file log keeps every field untouched.
    """
    request_id = event_dict.pop("http_request_id", None)
    if request_id is not None:
        event_dict["request_id"] = str(request_id)[:CONSOLE_REQUEST_ID_CHARS]
    url = event_dict.pop("repurpose_url", None)
    if url is not None:
        url_text = str(url)
        if len(url_text) > CONSOLE_URL_CHARS:
            url_text = url_text[: CONSOLE_URL_CHARS - 3] + "..."
        event_dict["url"] = url_text
    event_dict.pop("http_method", None)
    event_dict.pop("http_path", None)
    return event_dict


def _add_record_metadata(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["pathname"] = record.pathname
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
        event_dict["thread_name"] = record.threadName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except (OSError, ValueError):
            return False
    return False
