# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from procvisor.worker.base import StandardWorker, TcpWorker, UnixWorker

ECHO_PREFIX = b"Echo: "


class EchoWorker(StandardWorker):
    """Replies with the request prefixed by ``Echo: ``."""

    name = "echo"

    def process_message(self, data: bytes) -> bytes | None:
        return ECHO_PREFIX + data


class UnixEchoWorker(UnixWorker):
    name = "echo-unix"

    def process_message(self, data: bytes) -> bytes | None:
        return ECHO_PREFIX + data


class TcpEchoWorker(TcpWorker):
    name = "echo-tcp"

    def process_message(self, data: bytes) -> bytes | None:
        return ECHO_PREFIX + data
