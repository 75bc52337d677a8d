# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""Example workers used by the CLI, the sample config and the tests."""

from __future__ import annotations

from procvisor.examples.echo import EchoWorker, TcpEchoWorker, UnixEchoWorker
from procvisor.examples.http_proxy import HttpProxyWorker
from procvisor.examples.logger import LoggerWorker

__all__ = [
    "EchoWorker",
    "HttpProxyWorker",
    "LoggerWorker",
    "TcpEchoWorker",
    "UnixEchoWorker",
]
