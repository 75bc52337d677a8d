# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for the worker run loop, driven in-process with a fake transport."""

from __future__ import annotations

import logging
import signal
import socket
from collections import deque
from pathlib import Path

import pytest

from procvisor.examples.echo import EchoWorker, TcpEchoWorker, UnixEchoWorker
from procvisor.exceptions import TransportError
from procvisor.schemas import TransportKind
from procvisor.worker.base import StandardWorker, Worker, WorkerState
from procvisor.worker.transports import Exchange, TcpTransport, Transport, UnixTransport


class FakeExchange(Exchange):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.replies: list[bytes] = []
        self.closed = False

    def reply(self, data: bytes) -> None:
        self.replies.append(data)

    def close(self) -> None:
        self.closed = True


class FakeTransport(Transport):
    kind = TransportKind.STANDARD

    def __init__(self):
        self.pending: deque[FakeExchange] = deque()
        self.opened = False
        self.closed = False

    def push(self, data: bytes) -> FakeExchange:
        exchange = FakeExchange(data)
        self.pending.append(exchange)
        return exchange

    def open(self) -> None:
        self.opened = True

    def receive(self) -> Exchange | None:
        return self.pending.popleft() if self.pending else None

    def close(self) -> None:
        self.closed = True


class ScriptedWorker(StandardWorker):
    """Echoes, except ``boom`` raises, ``silent`` answers nothing and ``stop`` shuts down."""

    poll_interval = 0.001

    def __init__(self, args, channel=None, **kwargs):
        self.seen: list[bytes] = []
        super().__init__(args, channel, **kwargs)

    def create_transport(self) -> Transport:
        return FakeTransport()

    def process_message(self, data: bytes) -> bytes | None:
        self.seen.append(data)
        if data == b"boom":
            raise ValueError("bad request")
        if data == b"silent":
            return None
        if data == b"stop":
            self.shutdown()
        return b"Echo: " + data


@pytest.fixture
def worker() -> ScriptedWorker:
    return ScriptedWorker({}, install_signals=False)


# ── tick ──────────────────────────────────────────────────


class TestTick:
    def test_no_work(self, worker: ScriptedWorker):
        assert worker.tick() is False

    def test_reply_written_and_exchange_closed(self, worker: ScriptedWorker):
        exchange = worker.transport.push(b"ping")
        assert worker.tick() is True
        assert exchange.replies == [b"Echo: ping"]
        assert exchange.closed

    def test_none_response_writes_nothing(self, worker: ScriptedWorker):
        exchange = worker.transport.push(b"silent")
        assert worker.tick() is True
        assert exchange.replies == []
        assert exchange.closed

    def test_one_request_per_tick(self, worker: ScriptedWorker):
        worker.transport.push(b"a")
        worker.transport.push(b"b")
        worker.tick()
        assert worker.seen == [b"a"]

    def test_handler_fault_is_logged_and_loop_continues(self, worker: ScriptedWorker, caplog):
        failed = worker.transport.push(b"boom")
        ok = worker.transport.push(b"ping")

        with caplog.at_level(logging.ERROR, logger="procvisor.worker.base"):
            assert worker.tick() is True
        assert failed.replies == []
        assert failed.closed
        assert "Handler error" in caplog.text
        assert "bad request" in caplog.text

        assert worker.tick() is True
        assert ok.replies == [b"Echo: ping"]

    def test_base_handler_answers_nothing(self):
        class Quiet(ScriptedWorker):
            process_message = Worker.process_message

        worker = Quiet({}, install_signals=False)
        exchange = worker.transport.push(b"anything")
        worker.tick()
        assert exchange.replies == []


# ── Lifecycle ─────────────────────────────────────────────


class TestLifecycle:
    def test_handle_runs_until_shutdown(self, worker: ScriptedWorker):
        worker.transport.push(b"ping")
        stop = worker.transport.push(b"stop")
        worker.transport.push(b"after")

        worker.handle()

        assert worker.seen == [b"ping", b"stop"]
        assert stop.replies == [b"Echo: stop"]
        assert len(worker.transport.pending) == 1
        assert worker.transport.opened
        assert worker.transport.closed
        assert worker.state is WorkerState.TERMINATED

    def test_shutdown_before_handle(self, worker: ScriptedWorker):
        worker.transport.push(b"ping")
        worker.shutdown()
        assert worker.state is WorkerState.INITIALIZED

        worker.handle()

        assert worker.seen == []
        assert worker.transport.closed
        assert worker.state is WorkerState.TERMINATED

    def test_shutdown_while_running(self, worker: ScriptedWorker):
        worker._start()
        assert worker.state is WorkerState.RUNNING
        worker.shutdown(signal.SIGTERM)
        assert worker.running is False
        assert worker.state is WorkerState.SHUTTING_DOWN

    def test_signal_handler_installed(self, restore_signals):
        worker = ScriptedWorker({})
        assert signal.getsignal(signal.SIGTERM) == worker.shutdown

        signal.raise_signal(signal.SIGTERM)
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_handle_async(self, worker: ScriptedWorker):
        first = worker.transport.push(b"ping")
        worker.transport.push(b"stop")

        await worker.handle_async()

        assert first.replies == [b"Echo: ping"]
        assert worker.seen == [b"ping", b"stop"]
        assert worker.state is WorkerState.TERMINATED
        assert worker.transport.closed


# ── Transport selection ───────────────────────────────────


class TestCreateTransport:
    def test_standard_requires_channel(self):
        with pytest.raises(TransportError):
            EchoWorker({}, None, install_signals=False)

    def test_standard_uses_channel(self):
        ours, theirs = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        try:
            worker = EchoWorker({}, theirs, install_signals=False)
            assert worker.transport.kind is TransportKind.STANDARD
            assert worker.transport.channel is theirs
        finally:
            ours.close()
            theirs.close()

    def test_unix_args(self, short_tmp: Path):
        path = short_tmp / "e.sock"
        worker = UnixEchoWorker({"socket_path": str(path), "read_timeout": 2}, install_signals=False)
        assert isinstance(worker.transport, UnixTransport)
        assert worker.socket_path == path
        assert worker.transport.read_timeout == 2.0

    def test_unix_default_path(self):
        worker = UnixEchoWorker({}, install_signals=False)
        assert worker.socket_path.name.startswith("procvisor_")

    def test_tcp_defaults(self):
        worker = TcpEchoWorker({}, install_signals=False)
        assert isinstance(worker.transport, TcpTransport)
        assert worker.transport.host == "127.0.0.1"
        assert worker.port == 0
        assert worker.transport.ephemeral

    def test_no_transport_kind(self):
        with pytest.raises(TransportError):
            Worker({}, install_signals=False)

    def test_worker_name(self):
        assert EchoWorker.worker_name() == "echo"
        assert ScriptedWorker.worker_name() == f"{__name__}.ScriptedWorker"


# ── In-process Unix round trip ────────────────────────────


def test_unix_worker_round_trip(short_tmp: Path):
    path = short_tmp / "e.sock"
    worker = UnixEchoWorker({"socket_path": str(path)}, install_signals=False)
    worker._start()
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
            client.settimeout(5.0)
            client.connect(str(path))
            client.sendall(b"ping")
            client.shutdown(socket.SHUT_WR)

            assert worker.tick() is True
            assert client.recv(8192) == b"Echo: ping"
    finally:
        worker._finish()
    assert not path.exists()
    assert worker.state is WorkerState.TERMINATED
