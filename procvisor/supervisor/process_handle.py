"""
Supervisor-side handle for a spawned worker process.
"""

# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import socket
import subprocess
from dataclasses import dataclass, field
from datetime import datetime

from procvisor.exceptions import TransportError
from procvisor.time_utils import now_utc

logger = logging.getLogger(__name__)


# ── Worker Channel ──────────────────────────────────────────────────

class WorkerChannel:
    """
    The supervisor's end of a worker's duplex channel.

    Backed by one half of an ``AF_UNIX``/``SOCK_DGRAM`` socket pair, so
    each :meth:`send` arrives at the worker as one message.
    """

    def __init__(self, sock: socket.socket):
        self.sock = sock
        # Replies can exceed the worker-side read size; longer ones raise.
        self.read_max = sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)

    @property
    def closed(self) -> bool:
        return self.sock.fileno() == -1

    def send(self, data: bytes) -> None:
        """Send one message to the worker."""
        self.sock.setblocking(True)
        self.sock.send(data)

    def recv(self, timeout: float | None = None) -> bytes | None:
        """Receive one message, waiting up to *timeout* seconds.

        Returns:
            The message, or None if nothing arrived in time.
        """
        self.sock.settimeout(timeout)
        try:
            return self._recv_datagram()
        except (socket.timeout, BlockingIOError):
            return None

    def try_recv(self) -> bytes | None:
        """Non-blocking receive."""
        self.sock.setblocking(False)
        try:
            return self._recv_datagram()
        except (BlockingIOError, InterruptedError):
            return None

    def request(self, data: bytes, timeout: float = 5.0) -> bytes | None:
        """Send *data* and wait for a single reply."""
        self.send(data)
        return self.recv(timeout=timeout)

    def close(self) -> None:
        self.sock.close()

    def _recv_datagram(self) -> bytes:
        data, _ancdata, flags, _addr = self.sock.recvmsg(self.read_max)
        if flags & socket.MSG_TRUNC:
            raise TransportError(
                f"Worker message larger than {self.read_max} bytes was truncated"
            )
        return data


# ── Process Info ────────────────────────────────────────────────────

@dataclass
class ProcessInfo:
    """Process-local bookkeeping for one spawned worker."""

    name: str
    process: subprocess.Popen
    channel: WorkerChannel
    started_at: datetime = field(default_factory=now_utc)

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def send_signal(self, sig: int) -> None:
        """Signal the process.  No-op once it has been reaped."""
        try:
            self.process.send_signal(sig)
        except ProcessLookupError:
            logger.debug("Process %s (PID %s) already gone", self.name, self.pid)

    def force_stop(self, timeout: float = 2.0) -> int:
        """SIGKILL the process and reap it.  Returns the exit code."""
        if self.process.poll() is None:
            self.process.kill()
        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error("Process %s (PID %s) did not exit after SIGKILL", self.name, self.pid)
            return -9

    def close(self) -> None:
        try:
            self.channel.close()
        except OSError:
            logger.debug("Channel close error for PID %s", self.pid, exc_info=True)
