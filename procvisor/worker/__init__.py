# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
Worker-side run loop and transports.

A worker is a class deriving from :class:`Worker`; it runs in its own
OS process and exchanges raw request/response bytes over a duplex
channel, a Unix domain socket or a TCP socket.
"""

from __future__ import annotations

from procvisor.worker.base import (
    StandardWorker,
    TcpWorker,
    UnixWorker,
    Worker,
    WorkerState,
)
from procvisor.worker.transports import (
    StandardTransport,
    TcpTransport,
    Transport,
    UnixTransport,
)

__all__ = [
    "StandardTransport",
    "StandardWorker",
    "TcpTransport",
    "TcpWorker",
    "Transport",
    "UnixTransport",
    "UnixWorker",
    "Worker",
    "WorkerState",
]
