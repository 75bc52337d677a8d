# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
Child process entry point for worker processes.

Usage:
    python -m procvisor.supervisor.runner \\
        --worker procvisor.examples.echo:EchoWorker \\
        --channel-fd 5 \\
        --args '{"greeting": "hi"}'

The supervisor starts this module with one end of a socket pair passed
through ``--channel-fd``.  The runner imports the worker class,
constructs it with ``(args, channel)`` and runs its loop until a
shutdown signal arrives.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import socket
import sys
from pathlib import Path

from procvisor.exceptions import BindError, InvalidWorkerType
from procvisor.logging_config import setup_worker_logging
from procvisor.supervisor.table import ProcessTable
from procvisor.worker.base import Worker
from procvisor.worker.loader import resolve_worker

logger = logging.getLogger(__name__)

EXIT_BIND_ERROR = 1
EXIT_INVALID_WORKER = 2


class WorkerRunner:
    """Constructs one worker inside the child process and runs it."""

    def __init__(
        self,
        worker_type: type[Worker],
        args: dict,
        channel: socket.socket | None,
        poll_interval: float | None = None,
        table_path: Path | None = None,
    ):
        self.worker_type = worker_type
        self.args = args
        self.channel = channel
        self.poll_interval = poll_interval
        self.table_path = table_path

    def build(self) -> Worker:
        worker = self.worker_type(self.args, self.channel)
        if self.poll_interval is not None:
            worker.poll_interval = self.poll_interval
        if self.table_path is not None:
            # Workers may look at the shared table but never mutate it.
            worker.process_table = ProcessTable.attach(self.table_path)
        return worker

    def run(self, coroutine: bool = False) -> int:
        """Run the worker to completion and return the process exit code."""
        worker = self.build()
        try:
            if coroutine:
                asyncio.run(worker.handle_async())
            else:
                worker.handle()
        except BindError as e:
            logger.error("Worker %s failed to start: %s", self.worker_type.worker_name(), e)
            return EXIT_BIND_ERROR
        finally:
            if worker.process_table is not None:
                worker.process_table.close()
        return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="procvisor worker process")
    parser.add_argument("--worker", required=True, help="Worker class as module:QualName")
    parser.add_argument("--channel-fd", type=int, default=None, help="Inherited channel descriptor")
    parser.add_argument("--args", default="{}", help="Worker arguments as a JSON object")
    parser.add_argument("--table-path", type=Path, default=None, help="Shared process table file")
    parser.add_argument("--poll-interval", type=float, default=None, help="Tick quantum in seconds")
    parser.add_argument("--coroutine", action="store_true", help="Run the loop inside asyncio")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_worker_logging(args.worker, args.log_level)

    try:
        worker_type = resolve_worker(args.worker)
    except InvalidWorkerType as e:
        logger.error("Cannot load worker: %s", e)
        return EXIT_INVALID_WORKER

    worker_args = json.loads(args.args)
    channel = socket.socket(fileno=args.channel_fd) if args.channel_fd is not None else None

    runner = WorkerRunner(
        worker_type,
        worker_args,
        channel,
        poll_interval=args.poll_interval,
        table_path=args.table_path,
    )
    return runner.run(coroutine=args.coroutine)


if __name__ == "__main__":
    sys.exit(main())
