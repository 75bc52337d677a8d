# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
Worker transports: how a worker receives a request and sends a response.

Every transport follows the same per-tick contract: :meth:`Transport.receive`
returns at most one :class:`Exchange` (or ``None`` when no work is
pending) and never blocks waiting for new work.  The run loop hands
``exchange.data`` to the message handler, writes the optional response
with :meth:`Exchange.reply` and always calls :meth:`Exchange.close`.
"""

from __future__ import annotations

import logging
import os
import socket
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from procvisor.exceptions import BindError
from procvisor.handshake import HandshakeMessage
from procvisor.schemas import TransportKind

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────
READ_CHUNK = 8192           # bytes per recv() call
LISTEN_BACKLOG = 128
DEFAULT_READ_TIMEOUT = 5.0  # seconds to wait for a peer to finish sending
SOCKET_FILE_MODE = 0o777


def default_socket_path() -> Path:
    """Return a fresh, unique socket path in the system temp directory."""
    return Path(tempfile.gettempdir()) / f"procvisor_{uuid.uuid4().hex[:12]}.sock"


# ── Exchanges ──────────────────────────────────────────────────


class Exchange(ABC):
    """One received request and the means to answer it."""

    def __init__(self, data: bytes):
        self.data = data

    @abstractmethod
    def reply(self, data: bytes) -> None:
        """Write a single full response."""

    def close(self) -> None:
        """Release per-request resources."""


class ChannelExchange(Exchange):
    """A datagram received on the duplex channel."""

    def __init__(self, data: bytes, channel: socket.socket):
        super().__init__(data)
        self._channel = channel

    def reply(self, data: bytes) -> None:
        try:
            self._channel.send(data)
        except OSError as e:
            logger.warning("Failed to write response on channel: %s", e)


class ConnectionExchange(Exchange):
    """A request read from an accepted stream connection."""

    def __init__(self, data: bytes, conn: socket.socket):
        super().__init__(data)
        self._conn = conn

    def reply(self, data: bytes) -> None:
        try:
            self._conn.sendall(data)
        except OSError as e:
            logger.warning("Failed to write response to client: %s", e)

    def close(self) -> None:
        self._conn.close()


# ── Transport Base ─────────────────────────────────────────────


class Transport(ABC):
    """Per-worker I/O strategy."""

    kind: TransportKind

    @abstractmethod
    def open(self) -> None:
        """Acquire OS resources.  Raises :class:`BindError` on failure."""

    @abstractmethod
    def receive(self) -> Exchange | None:
        """Return at most one pending request without blocking for new work."""

    @abstractmethod
    def close(self) -> None:
        """Release OS resources.  Safe to call more than once."""

    def describe(self) -> dict:
        """Transport facts worth recording in the process table."""
        return {}


# ── Standard (duplex channel) ──────────────────────────────────


class StandardTransport(Transport):
    """Datagram channel shared 1:1 with the supervisor."""

    kind = TransportKind.STANDARD

    def __init__(self, channel: socket.socket):
        self.channel = channel
        self.read_max = READ_CHUNK
        self._closed = False

    def open(self) -> None:
        self.channel.setblocking(False)
        # Datagrams are read whole; a short read would truncate them.
        self.read_max = max(
            READ_CHUNK, self.channel.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
        )

    def receive(self) -> Exchange | None:
        try:
            data = self.channel.recv(self.read_max)
        except (BlockingIOError, InterruptedError):
            return None
        if not data:
            return None
        return ChannelExchange(data, self.channel)

    def close(self) -> None:
        if not self._closed:
            self.channel.close()
            self._closed = True


# ── Stream servers (Unix / TCP) ────────────────────────────────


class _StreamServerTransport(Transport):
    """Accept one connection per tick, read until EOF, answer, close."""

    def __init__(self, read_timeout: float = DEFAULT_READ_TIMEOUT):
        self.read_timeout = read_timeout
        self.sock: socket.socket | None = None

    @abstractmethod
    def _listen(self) -> socket.socket:
        """Create, bind and listen; return the listening socket."""

    def open(self) -> None:
        try:
            self.sock = self._listen()
            self.sock.setblocking(False)
        except OSError as e:
            self.close()
            raise BindError(f"{self.kind.value} transport failed to listen: {e}") from e

    def receive(self) -> Exchange | None:
        if self.sock is None:
            return None
        try:
            conn, _addr = self.sock.accept()
        except (BlockingIOError, InterruptedError):
            return None

        conn.settimeout(self.read_timeout)
        data = self._read_until_eof(conn)
        if not data:
            conn.close()
            return None
        return ConnectionExchange(data, conn)

    def _read_until_eof(self, conn: socket.socket) -> bytes | None:
        chunks: list[bytes] = []
        try:
            while True:
                buffer = conn.recv(READ_CHUNK)
                if not buffer:
                    break
                chunks.append(buffer)
        except socket.timeout:
            logger.warning(
                "Client did not finish sending within %.1fs; dropping connection",
                self.read_timeout,
            )
            return None
        except ConnectionError as e:
            logger.debug("Client connection error while reading: %s", e)
            return None
        return b"".join(chunks)

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None


class UnixTransport(_StreamServerTransport):
    """Unix domain socket server bound to a filesystem path."""

    kind = TransportKind.UNIX

    def __init__(self, socket_path: Path, read_timeout: float = DEFAULT_READ_TIMEOUT):
        super().__init__(read_timeout)
        self.socket_path = socket_path
        self._inode: int | None = None

    def _listen(self) -> socket.socket:
        # Remove stale socket file if exists
        if self.socket_path.exists() or self.socket_path.is_symlink():
            self.socket_path.unlink()

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self.socket_path))
            sock.listen(LISTEN_BACKLOG)
            os.chmod(self.socket_path, SOCKET_FILE_MODE)
            self._inode = os.stat(self.socket_path).st_ino
        except OSError:
            sock.close()
            raise
        logger.info("Unix transport listening on %s", self.socket_path)
        return sock

    def close(self) -> None:
        super().close()
        if self._inode is None:
            return
        inode, self._inode = self._inode, None
        try:
            # Another listener may have rebound this path since.
            if os.stat(self.socket_path).st_ino == inode:
                self.socket_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove socket file %s: %s", self.socket_path, e)

    def describe(self) -> dict:
        return {"socket_path": str(self.socket_path)}


class TcpTransport(_StreamServerTransport):
    """TCP socket server.

    When constructed with ``port=0`` the OS assigns a port; once
    listening, the transport reports it to the supervisor by sending a
    :class:`HandshakeMessage` over *channel*.
    """

    kind = TransportKind.TCP

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        channel: socket.socket | None = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ):
        super().__init__(read_timeout)
        self.host = host
        self.port = port
        self.channel = channel
        self.ephemeral = port == 0

    def _listen(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(LISTEN_BACKLOG)
        except OSError:
            sock.close()
            raise
        self.port = sock.getsockname()[1]
        logger.info("TCP transport listening on %s:%d", self.host, self.port)
        return sock

    def open(self) -> None:
        super().open()
        if self.ephemeral:
            self._send_handshake()

    def _send_handshake(self) -> None:
        if self.channel is None:
            logger.debug("No channel to report ephemeral port %d", self.port)
            return
        try:
            self.channel.send(HandshakeMessage(port=self.port).to_bytes())
            logger.debug("Handshake sent: port=%d", self.port)
        except OSError as e:
            logger.error("Failed to send handshake for port %d: %s", self.port, e)

    def describe(self) -> dict:
        return {"host": self.host, "port": self.port}
