"""structlog setup for extraction runs.

structlog events are handed to the stdlib root logger and rendered by a
single ``ProcessorFormatter``, so stderr and the optional log file carry the
same lines. Every run binds a ``run_id``; while a task is analyzed its index
and source line are bound on top of it.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from smart_extract.config import LoggingSettings
    from smart_extract.models import ExtractedTask

_task_log: structlog.stdlib.BoundLogger = structlog.get_logger("task")
_provenance_log: structlog.stdlib.BoundLogger = structlog.get_logger("provenance")

# Libraries that log every request or extraction at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "LiteLLM", "trafilatura")


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _handlers(log_file: Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    return handlers


def configure_logging(settings: LoggingSettings, *, run_id: str | None = None) -> str:
    """Route structlog through the root logger and bind a run identifier.

    Safe to call repeatedly: previously installed root handlers are replaced.

    Args:
        settings: Level, output format and optional log file.
        run_id: Identifier bound to every entry; generated when omitted.

    Returns:
        The bound run identifier.
    """
    level = logging.getLevelNamesMapping()[settings.level]

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings.format),
        ],
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in _handlers(settings.file):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    run_id = run_id or uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(run_id=run_id)
    return run_id


@contextmanager
def task_logging_context(
    task: ExtractedTask, index: int
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind ``task_index`` and ``line_number`` while one task is analyzed.

    ``task_start`` and ``task_end`` (with the elapsed time) bracket the
    block; an exception escaping it is logged as ``task_error`` and re-raised.

    Args:
        task: The task being analyzed.
        index: Its position in the batch.

    Yields:
        The task logger.
    """
    started = time.perf_counter()
    with structlog.contextvars.bound_contextvars(
        task_index=index, line_number=task.line_number
    ):
        _task_log.info("task_start", urls=len(task.urls), tags=task.tags)
        try:
            yield _task_log
        except Exception:
            _task_log.exception("task_error")
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000)
            _task_log.info("task_end", elapsed_ms=elapsed_ms)


def log_provenance(
    source_url: str,
    action: str,
    strategy: str = "",
    details: dict[str, Any] | None = None,
) -> None:
    """Record where a piece of task context came from.

    Args:
        source_url: The URL the content was taken from.
        action: ``extracted``, ``summarized`` or ``cached``.
        strategy: The extraction strategy that produced the content.
        details: Extra fields such as character counts.
    """
    _provenance_log.info(
        "provenance_entry",
        source_url=source_url,
        action=action,
        strategy=strategy,
        **(details or {}),
    )
