# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
Process supervisor package.

Runs each worker in a separate OS process, tracks live workers in a
SQLite-backed process table shared across processes, and talks to
workers over a duplex channel, a Unix domain socket or TCP.
"""

from __future__ import annotations

from procvisor.supervisor.manager import ProcessSupervisor, TcpSpawnResult, UnixSpawnResult
from procvisor.supervisor.process_handle import ProcessInfo, WorkerChannel
from procvisor.supervisor.table import ProcessTable

__all__ = [
    "ProcessInfo",
    "ProcessSupervisor",
    "ProcessTable",
    "TcpSpawnResult",
    "UnixSpawnResult",
    "WorkerChannel",
]
