"""Logging setup for draftgraph.

Every module logs through structlog with snake_case event names. Events go
through the standard library so two sinks can share them:

- stderr, rendered by rich, at the level picked with ``-v``/``-vv``;
- ``{workspace}/logs/debug.jsonl``, one JSON object per event at DEBUG,
  when the CLI runs with ``--log``.
"""

from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003 - used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import EventDict, Processor

LOGS_DIR_NAME = "logs"
LOG_FILE_NAME = "debug.jsonl"

# Third-party loggers that stay at WARNING whatever the verbosity.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None

_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def console_level(verbosity: int) -> int:
    """Console level for a ``-v`` count: WARNING, INFO, then DEBUG."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def _drop_console_noise(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    # rich prints its own time and level columns
    event_dict.pop("timestamp", None)
    event_dict.pop("level", None)
    event_dict.pop("logger", None)
    return event_dict


def _console_handler(verbosity: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=console_level(verbosity),
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _drop_console_noise,
                structlog.processors.KeyValueRenderer(key_order=["event"], drop_missing=True),
            ],
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def _jsonl_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.dict_tracebacks,
                structlog.processors.JSONRenderer(default=str),
            ],
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    workspace_path: Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; a previous file sink is closed first.

    Args:
        verbosity: 0 for WARNING, 1 for INFO, 2 or more for DEBUG on stderr.
        log_to_file: Also write every event to ``{workspace_path}/logs/debug.jsonl``.
        workspace_path: Workspace directory; required with *log_to_file*.

    Raises:
        ValueError: If *log_to_file* is set without *workspace_path*.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and workspace_path is None:
        raise ValueError("workspace_path is required when log_to_file=True")

    close_file_logging()

    handlers = [_console_handler(verbosity)]
    if log_to_file and workspace_path is not None:
        _logs_dir = workspace_path / LOGS_DIR_NAME
        _logs_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = _jsonl_handler(_logs_dir / LOG_FILE_NAME)
        handlers.append(_file_handler)
    else:
        _logs_dir = None

    root_level = logging.DEBUG if log_to_file else console_level(verbosity)
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Structlog logger for *name*, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Directory receiving the JSONL log, or None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Flush and close the JSONL sink, if one is open."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
