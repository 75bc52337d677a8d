# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

logger = logging.getLogger("procvisor")


def cmd_serve(args: argparse.Namespace) -> None:
    """Boot the configured workers and supervise them until interrupted."""
    from procvisor.boot import boot
    from procvisor.config import load_config
    from procvisor.exceptions import ConfigError, ProcvisorError
    from procvisor.supervisor.manager import ProcessSupervisor

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)

    stop = threading.Event()

    def _on_signal(signum: int, _frame: object) -> None:
        logger.info("Received signal %d, stopping workers", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _on_signal)
    signal.signal(signal.SIGINT, _on_signal)

    supervisor = ProcessSupervisor(config.supervisor)
    try:
        result = boot(config, supervisor=supervisor)
    except ProcvisorError as e:
        logger.error("Boot failed: %s", e)
        supervisor.shutdown()
        sys.exit(1)

    for entry in result.started:
        print(" ".join(f"{k}={v}" for k, v in entry.items()))

    try:
        while not stop.wait(args.reap_interval):
            for pid in supervisor.reap():
                logger.warning("Worker PID %s exited", pid)
    finally:
        supervisor.shutdown()
