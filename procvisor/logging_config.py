# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Centralized logging configuration for procvisor.

Uses structlog in stdlib-compatible mode so that plain
``logging.getLogger(__name__)`` calls gain structured output
(context binding, JSON file output) without changing call sites.

Provides:
- setup_logging(): structlog + stdlib unified setup (console + file)
- setup_worker_logging(): per-worker setup used inside child processes
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import orjson
import structlog


# ── Shared Processors ──────────────────────────────────────────


def _build_shared_processors() -> list:
    """Build the shared processor chain used by both structlog and stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _orjson_serializer(obj: object, **_kw) -> str:  # noqa: ANN001
    return orjson.dumps(obj).decode("utf-8")


# ── Main Setup ─────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    json_file: bool = True,
) -> None:
    """Configure logging for the supervisor process.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, etc.).
        log_dir: Directory for log files. If None, file logging is disabled.
        json_file: Whether to use JSON format for the file handler.
    """
    shared_processors = _build_shared_processors()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    # foreign_pre_chain runs stdlib LogRecords through the structlog pipeline
    foreign_pre_chain = list(shared_processors)

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(),
        ],
        foreign_pre_chain=foreign_pre_chain,
    )
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG)
    console.setFormatter(console_formatter)
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / "procvisor.log"

        if json_file:
            file_formatter = structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.JSONRenderer(serializer=_orjson_serializer),
                ],
                foreign_pre_chain=foreign_pre_chain,
            )
        else:
            file_formatter = structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.dev.ConsoleRenderer(colors=False),
                ],
                foreign_pre_chain=foreign_pre_chain,
            )

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        root.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ── Worker-specific Logging ────────────────────────────────────


class WorkerNameFilter(logging.Filter):
    """Inject worker name and pid into log records."""

    def __init__(self, worker_name: str):
        super().__init__()
        self.worker_name = worker_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.worker_name = self.worker_name  # type: ignore[attr-defined]
        record.worker_pid = os.getpid()  # type: ignore[attr-defined]
        return True


def setup_worker_logging(worker_name: str, level: str = "INFO") -> None:
    """Configure logging inside a worker child process.

    Workers write human-readable lines to stderr, which the supervisor
    leaves attached to its own stderr.  The worker name and pid are
    bound into the structlog context so every line carries them.
    """
    setup_logging(level=level)
    structlog.contextvars.bind_contextvars(worker=worker_name, pid=os.getpid())

    worker_filter = WorkerNameFilter(worker_name)
    for handler in logging.getLogger().handlers:
        handler.addFilter(worker_filter)

    logging.getLogger(__name__).debug("Worker logging configured: %s", worker_name)
