from __future__ import annotations
# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Shared value types for the supervisor, the process table and workers."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from procvisor.time_utils import now_utc


# ── Enums ─────────────────────────────────────────────────

class TransportKind(Enum):
    """How a worker exchanges requests and responses."""
    STANDARD = "standard"    # duplex channel inherited from the supervisor
    UNIX = "unix"            # Unix domain socket server
    TCP = "tcp"              # TCP socket server


class ProcessStatus(Enum):
    """Supervisor-side status of a tracked worker."""
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


# ── Process Record ────────────────────────────────────────

@dataclass
class ProcessRecord:
    """One entry of the process table.

    ``metadata`` holds transport-specific facts such as ``socket_path``
    for Unix workers or ``host``/``port`` for TCP workers.  It must stay
    JSON-serialisable because the table is shared across processes.
    """

    pid: int
    name: str
    transport: TransportKind
    status: ProcessStatus = ProcessStatus.STARTING
    started_at: datetime = field(default_factory=now_utc)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "name": self.name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "transport": self.transport.value,
            "metadata": dict(self.metadata),
        }
