"""
Process Supervisor - spawns worker processes and tracks them in the process table.
"""

# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import os
import signal
import socket
import subprocess
import sys
import time
import uuid
from pathlib import Path
from typing import Any, TypedDict

from procvisor.config.models import SupervisorConfig
from procvisor.exceptions import (
    HandshakeTimeout,
    InvalidWorkerType,
    SpawnError,
    TableFullError,
)
from procvisor.handshake import HandshakeMessage
from procvisor.schemas import ProcessRecord, ProcessStatus, TransportKind
from procvisor.supervisor.process_handle import ProcessInfo, WorkerChannel
from procvisor.supervisor.table import ProcessTable
from procvisor.worker.base import Worker
from procvisor.worker.loader import import_string_for, validate_worker_type

logger = logging.getLogger(__name__)

RUNNER_MODULE = "procvisor.supervisor.runner"


class UnixSpawnResult(TypedDict):
    pid: int
    socket_path: str


class TcpSpawnResult(TypedDict):
    pid: int
    port: int


# ── Process Supervisor ─────────────────────────────────────────────

class ProcessSupervisor:
    """
    Supervisor for worker processes.

    Responsibilities:
    - Start worker processes (one OS process per worker)
    - Record live workers in the shared process table
    - Learn ephemeral TCP ports through the handshake protocol
    - Signal, reap and clean up after workers

    The supervisor never waits for a worker to exit except in
    :meth:`wait_all` and :meth:`shutdown`.
    """

    def __init__(self, config: SupervisorConfig | None = None):
        self.config = config or SupervisorConfig()
        self.socket_dir = self.config.resolved_socket_dir()
        self.table = ProcessTable.create(
            self.config.resolved_table_path(), capacity=self.config.max_processes,
        )
        self.processes: dict[int, ProcessInfo] = {}
        self._closed = False

    def __enter__(self) -> ProcessSupervisor:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    # ── Spawning ────────────────────────────────────────────

    def spawn(self, worker_type: type[Worker], args: dict[str, Any] | None = None) -> int:
        """
        Start a worker process.

        Unix and TCP worker types are routed through :meth:`spawn_unix`
        and :meth:`spawn_tcp` so their metadata is always recorded.

        Returns:
            The worker's pid

        Raises:
            InvalidWorkerType: If the class violates the worker contract
            SpawnError: If the OS process could not be started
            TableFullError: If the process table is at capacity
            HandshakeTimeout: If an ephemeral TCP worker never reports its port
        """
        worker_type = validate_worker_type(worker_type)
        kind = worker_type.transport_kind

        if kind is TransportKind.UNIX:
            return self.spawn_unix(worker_type, args)["pid"]
        if kind is TransportKind.TCP:
            return self.spawn_tcp(worker_type, args)["pid"]

        info = self._spawn(worker_type, dict(args or {}), metadata={})
        self.table.set_status(info.pid, ProcessStatus.RUNNING)
        return info.pid

    def spawn_unix(
        self,
        worker_type: type[Worker],
        args: dict[str, Any] | None = None,
    ) -> UnixSpawnResult:
        """Start a Unix-socket worker, generating a socket path if none is given."""
        worker_type = self._require_kind(worker_type, TransportKind.UNIX)
        worker_args = dict(args or {})

        if not worker_args.get("socket_path"):
            self.socket_dir.mkdir(parents=True, exist_ok=True)
            worker_args["socket_path"] = str(self.socket_dir / f"{uuid.uuid4().hex[:12]}.sock")
        socket_path = str(worker_args["socket_path"])

        info = self._spawn(worker_type, worker_args, metadata={"socket_path": socket_path})
        self.table.set_status(info.pid, ProcessStatus.RUNNING)
        return {"pid": info.pid, "socket_path": socket_path}

    def spawn_tcp(
        self,
        worker_type: type[Worker],
        args: dict[str, Any] | None = None,
    ) -> TcpSpawnResult:
        """
        Start a TCP worker.

        If ``args["port"]`` is 0 or absent, waits for the worker's
        handshake message to learn the OS-assigned port, polling every
        ``handshake_poll_interval`` for up to ``handshake_timeout``.
        On timeout the worker and its record are left in place.
        """
        worker_type = self._require_kind(worker_type, TransportKind.TCP)
        worker_args = dict(args or {})
        host = worker_args.get("host") or "127.0.0.1"
        port = int(worker_args.get("port") or 0)
        worker_args.update(host=host, port=port)

        info = self._spawn(worker_type, worker_args, metadata={"host": host, "port": port})

        if port == 0:
            port = self._await_handshake(info)
            self.table.set_metadata(info.pid, {"port": port})
            logger.info("Worker %s (PID %s) bound ephemeral port %d", info.name, info.pid, port)

        self.table.set_status(info.pid, ProcessStatus.RUNNING)
        return {"pid": info.pid, "port": port}

    def _require_kind(self, worker_type: type[Worker], kind: TransportKind) -> type[Worker]:
        worker_type = validate_worker_type(worker_type)
        if worker_type.transport_kind is not kind:
            raise InvalidWorkerType(
                f"{worker_type.__qualname__} uses the {worker_type.transport_kind.value} "
                f"transport, expected {kind.value}"
            )
        return worker_type

    def _spawn(
        self,
        worker_type: type[Worker],
        args: dict[str, Any],
        metadata: dict[str, Any],
    ) -> ProcessInfo:
        """Start the OS process and insert a STARTING record."""
        name = worker_type.worker_name()
        parent_sock, child_sock = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)

        cmd = [
            sys.executable,
            "-m", RUNNER_MODULE,
            "--worker", import_string_for(worker_type),
            "--channel-fd", str(child_sock.fileno()),
            "--args", json.dumps(args, default=str),
            "--table-path", str(self.table.db_path),
            "--poll-interval", str(self.config.poll_interval),
            "--log-level", self.config.log_level,
        ]
        if self.config.enable_coroutine:
            cmd.append("--coroutine")

        logger.info("Starting worker: %s", name)
        logger.debug("Command: %s", " ".join(cmd))

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                pass_fds=(child_sock.fileno(),),
                env=self._child_env(),
            )
        except (OSError, subprocess.SubprocessError) as e:
            parent_sock.close()
            logger.error("Failed to start worker %s: %s", name, e)
            raise SpawnError(f"Failed to start worker {name}: {e}") from e
        finally:
            child_sock.close()

        info = ProcessInfo(name=name, process=process, channel=WorkerChannel(parent_sock))
        record = ProcessRecord(
            pid=info.pid,
            name=name,
            transport=worker_type.transport_kind,
            status=ProcessStatus.STARTING,
            started_at=info.started_at,
            metadata=metadata,
        )

        try:
            self.table.put(info.pid, record)
        except TableFullError:
            logger.error("Process table full; stopping freshly started %s (PID %s)", name, info.pid)
            info.force_stop()
            info.close()
            self._remove_socket_file(metadata.get("socket_path"))
            raise

        self.processes[info.pid] = info
        logger.info("Worker started: %s (PID %s)", name, info.pid)
        return info

    @staticmethod
    def _child_env() -> dict[str, str]:
        """Environment for the runner: make the caller's import path visible."""
        env = dict(os.environ)
        paths = [os.getcwd()] + [p for p in sys.path if p]
        if env.get("PYTHONPATH"):
            paths.append(env["PYTHONPATH"])
        env["PYTHONPATH"] = os.pathsep.join(dict.fromkeys(paths))
        return env

    def _await_handshake(self, info: ProcessInfo) -> int:
        """Poll the worker channel for its port report."""
        timeout = self.config.handshake_timeout
        interval = self.config.handshake_poll_interval
        deadline = time.monotonic() + timeout

        while True:
            payload = info.channel.try_recv()
            if payload:
                try:
                    return HandshakeMessage.from_json(payload).port
                except ValueError as e:
                    logger.warning("Ignoring malformed handshake from PID %s: %s", info.pid, e)

            if info.process.poll() is not None:
                code = info.process.returncode
                self._forget(info.pid)
                raise SpawnError(
                    f"Worker {info.name} (PID {info.pid}) exited with code {code} "
                    "before reporting its port"
                )

            if time.monotonic() >= deadline:
                logger.warning(
                    "Handshake timeout: %s (PID %s) did not report its port within %.1fs",
                    info.name, info.pid, timeout,
                )
                raise HandshakeTimeout(
                    f"Worker {info.name} (PID {info.pid}) did not report its port "
                    f"within {timeout}s",
                    pid=info.pid,
                )
            time.sleep(interval)

    # ── Termination ─────────────────────────────────────────

    def kill(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        """
        Signal a tracked worker and stop tracking it.

        Unix socket files are removed on a best-effort basis and the
        worker's channel is closed.  Does not wait for the process to
        exit: its Popen handle is kept until :meth:`reap`, :meth:`wait_all`
        or :meth:`shutdown` collects it.

        Returns:
            False if *pid* is not tracked, True otherwise
        """
        record = self.table.get(pid)
        if record is None:
            return False

        info = self.processes.get(pid)
        if info is not None:
            info.send_signal(sig)
            info.close()
        else:
            try:
                os.kill(pid, sig)
            except ProcessLookupError:
                logger.debug("PID %s already gone", pid)

        if record.transport is TransportKind.UNIX:
            self._remove_socket_file(record.metadata.get("socket_path"))

        self.table.remove(pid)
        logger.info("Process killed: %s (PID %s, signal %d)", record.name, pid, sig)
        return True

    def reap(self) -> list[int]:
        """Collect workers that have exited without blocking.

        Returns:
            Pids of the workers reaped by this call
        """
        reaped: list[int] = []
        for pid, info in list(self.processes.items()):
            code = info.process.poll()
            if code is None:
                continue
            logger.info("Worker exited: %s (PID %s, code=%s)", info.name, pid, code)
            self._forget(pid)
            reaped.append(pid)
        return reaped

    def wait_all(self) -> None:
        """Block until every spawned worker has exited, reaping each one."""
        while self.processes:
            pid, info = next(iter(self.processes.items()))
            code = info.process.wait()
            logger.debug("Reaped %s (PID %s, code=%s)", info.name, pid, code)
            self._forget(pid)

    def shutdown(self, timeout: float = 5.0) -> None:
        """Terminate every worker, escalating to SIGKILL after *timeout*."""
        if self._closed:
            return
        for pid in list(self.processes):
            self.kill(pid)

        deadline = time.monotonic() + timeout
        for pid, info in list(self.processes.items()):
            remaining = max(deadline - time.monotonic(), 0.0)
            try:
                info.process.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                logger.error("Worker did not respond to SIGTERM, sending SIGKILL: %s (PID %s)", info.name, pid)
                info.force_stop()

        self.wait_all()
        self.table.close()
        self._closed = True
        logger.info("Supervisor shut down")

    def _forget(self, pid: int) -> None:
        """Drop all bookkeeping for an exited worker."""
        info = self.processes.pop(pid, None)
        if info is not None:
            info.close()

        record = self.table.get(pid)
        if record is not None:
            if record.transport is TransportKind.UNIX:
                self._remove_socket_file(record.metadata.get("socket_path"))
            self.table.remove(pid)

    @staticmethod
    def _remove_socket_file(socket_path: str | None) -> None:
        if not socket_path:
            return
        try:
            Path(socket_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove socket file %s: %s", socket_path, e)

    # ── Queries ─────────────────────────────────────────────

    def is_running(self, name: str | type[Worker]) -> bool:
        """True iff some tracked worker with *name* has status RUNNING."""
        if isinstance(name, type):
            name = name.worker_name()
        return any(
            record.name == name and record.status is ProcessStatus.RUNNING
            for _pid, record in self.table.scan()
        )

    def get_running_processes(self) -> dict[int, ProcessRecord]:
        """Snapshot of the process table."""
        return dict(self.table.scan())

    def get_process(self, pid: int) -> ProcessRecord | None:
        return self.table.get(pid)

    def channel(self, pid: int) -> WorkerChannel | None:
        """The supervisor's end of *pid*'s duplex channel, if tracked."""
        info = self.processes.get(pid)
        if info is None or info.channel.closed:
            return None
        return info.channel
