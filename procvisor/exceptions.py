from __future__ import annotations
# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Unified exception hierarchy for procvisor.

All domain-specific exceptions derive from :class:`ProcvisorError`,
enabling callers to catch the entire family with a single clause::

    try:
        supervisor.spawn_tcp(MyWorker, {"port": 0})
    except ProcvisorError as e:
        logger.error("Supervisor error: %s", e)
"""


class ProcvisorError(Exception):
    """Base exception for all procvisor errors."""


# ── Process ──────────────────────────────────────────────────


class ProcessError(ProcvisorError):
    """Process lifecycle errors raised by the supervisor."""


class InvalidWorkerType(ProcessError):
    """Worker class does not satisfy the worker contract."""


class SpawnError(ProcessError):
    """OS-level failure while starting a worker process."""


class HandshakeTimeout(ProcessError):
    """A TCP worker did not report its bound port in time.

    The worker process is left running; ``pid`` identifies it so the
    caller can decide whether to kill it.
    """

    def __init__(self, message: str, *, pid: int) -> None:
        super().__init__(message)
        self.pid = pid


class TableFullError(ProcessError):
    """The process table has reached its fixed capacity."""


# ── Transport ────────────────────────────────────────────────


class TransportError(ProcvisorError):
    """Worker transport errors."""


class BindError(TransportError):
    """Socket create/bind/listen failure inside a worker."""


# ── Configuration ────────────────────────────────────────────


class ConfigError(ProcvisorError):
    """Configuration errors."""


class ConfigValidationError(ConfigError):
    """Configuration validation failure."""
