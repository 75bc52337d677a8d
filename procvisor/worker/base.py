# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
Worker base classes and the cooperative run loop.

A worker runs inside its own OS process (see
:mod:`procvisor.supervisor.runner`).  It owns a single transport, polls
it once per tick and hands each request to :meth:`Worker.process_message`.
Shutdown is cooperative: SIGTERM/SIGINT only clear the ``running`` flag,
which the loop checks once per tick.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import socket
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from procvisor.exceptions import TransportError
from procvisor.schemas import TransportKind
from procvisor.worker.transports import (
    DEFAULT_READ_TIMEOUT,
    StandardTransport,
    TcpTransport,
    Transport,
    UnixTransport,
    default_socket_path,
)

if TYPE_CHECKING:
    from procvisor.supervisor.table import ProcessTable

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.01  # 10ms tick quantum
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class WorkerState(Enum):
    """Lifecycle of a worker's run loop."""
    INITIALIZED = "initialized"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


# ── Worker ──────────────────────────────────────────────────

class Worker:
    """
    Base class for all workers.

    Subclasses pick a transport by setting ``transport_kind`` (or by
    deriving from :class:`StandardWorker`, :class:`UnixWorker` or
    :class:`TcpWorker`) and override :meth:`process_message`.

    Args:
        args: Worker arguments.  Transport-specific keys are
            ``socket_path`` (Unix), ``host``/``port`` (TCP) and
            ``read_timeout`` (Unix/TCP).
        channel: The worker's end of the duplex channel created by the
            supervisor.  Required for Standard workers and for TCP
            workers that report an ephemeral port.
        install_signals: Install SIGTERM/SIGINT handlers.  Only the main
            thread may do this.
    """

    transport_kind: ClassVar[TransportKind | None] = None
    name: ClassVar[str | None] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    process_table: ProcessTable | None = None  # read-only view, set by the runner

    def __init__(
        self,
        args: dict[str, Any],
        channel: socket.socket | None = None,
        *,
        install_signals: bool = True,
    ):
        self.args = dict(args)
        self.channel = channel
        self.running = True
        self.state = WorkerState.INITIALIZED
        self.transport = self.create_transport()

        if install_signals:
            for sig in SHUTDOWN_SIGNALS:
                signal.signal(sig, self.shutdown)

    @classmethod
    def worker_name(cls) -> str:
        """Name under which the supervisor tracks this worker type."""
        return cls.name or f"{cls.__module__}.{cls.__qualname__}"

    def create_transport(self) -> Transport:
        """Build the transport declared by ``transport_kind``."""
        kind = self.transport_kind
        read_timeout = float(self.args.get("read_timeout", DEFAULT_READ_TIMEOUT))

        if kind is TransportKind.STANDARD:
            if self.channel is None:
                raise TransportError(f"{self.worker_name()} needs a channel for the standard transport")
            return StandardTransport(self.channel)
        if kind is TransportKind.UNIX:
            raw_path = self.args.get("socket_path")
            socket_path = Path(raw_path) if raw_path else default_socket_path()
            return UnixTransport(socket_path, read_timeout=read_timeout)
        if kind is TransportKind.TCP:
            return TcpTransport(
                host=self.args.get("host") or "127.0.0.1",
                port=int(self.args.get("port") or 0),
                channel=self.channel,
                read_timeout=read_timeout,
            )
        raise TransportError(f"{self.worker_name()} declares no transport kind")

    # ── Signals ─────────────────────────────────────────────

    def shutdown(self, signum: int | None = None, frame: Any = None) -> None:
        """Ask the run loop to stop at the next tick."""
        if signum is not None:
            logger.info("Received signal %d, shutting down %s", signum, self.worker_name())
        self.running = False
        if self.state is WorkerState.RUNNING:
            self.state = WorkerState.SHUTTING_DOWN

    # ── Run loop ────────────────────────────────────────────

    def handle(self) -> None:
        """Open the transport and poll it until shutdown is requested."""
        self._start()
        try:
            while self.running:
                self.tick()
                time.sleep(self.poll_interval)
        finally:
            self._finish()

    async def handle_async(self) -> None:
        """Coroutine variant of :meth:`handle` for coroutine mode.

        Runs the same tick inside the event loop; only one request is
        ever in flight.
        """
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.shutdown, sig)

        try:
            self._start()
            try:
                while self.running:
                    self.tick()
                    await asyncio.sleep(self.poll_interval)
            finally:
                self._finish()
        finally:
            for sig in SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)

    def tick(self) -> bool:
        """Service at most one request.  Returns True if one was found."""
        exchange = self.transport.receive()
        if exchange is None:
            return False

        try:
            try:
                response = self.process_message(exchange.data)
            except Exception:
                logger.exception(
                    "Handler error in %s (%d bytes request); continuing",
                    self.worker_name(), len(exchange.data),
                )
                return True
            if response is not None:
                exchange.reply(response)
        finally:
            exchange.close()
        return True

    def process_message(self, data: bytes) -> bytes | None:
        """Handle one request.  Override in subclasses.

        Returns:
            The response to write back, or None for no response.
        """
        return None

    def _start(self) -> None:
        self.transport.open()
        # A signal may have arrived between construction and open().
        if self.running:
            self.state = WorkerState.RUNNING
        logger.info("Worker running: %s (%s)", self.worker_name(), self.transport.kind.value)

    def _finish(self) -> None:
        self.state = WorkerState.SHUTTING_DOWN
        try:
            self.transport.close()
        finally:
            self.state = WorkerState.TERMINATED
            logger.info("Worker terminated: %s", self.worker_name())


# ── Transport-specific bases ──────────────────────────────────

class StandardWorker(Worker):
    """Worker that talks over the duplex channel."""
    transport_kind = TransportKind.STANDARD


class UnixWorker(Worker):
    """Worker serving a Unix domain socket."""
    transport_kind = TransportKind.UNIX

    @property
    def socket_path(self) -> Path:
        return self.transport.socket_path  # type: ignore[attr-defined]


class TcpWorker(Worker):
    """Worker serving a TCP socket."""
    transport_kind = TransportKind.TCP

    @property
    def port(self) -> int:
        return self.transport.port  # type: ignore[attr-defined]
