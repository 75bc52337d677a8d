# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Start every worker listed in a :class:`ProcvisorConfig`.

Standard workers are started first, then TCP workers, then Unix-socket
workers.  A failure stops the boot and propagates; workers that were
already started stay tracked by the returned supervisor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from procvisor.config.models import ProcvisorConfig, WorkerSpec
from procvisor.supervisor.manager import ProcessSupervisor
from procvisor.worker.loader import resolve_worker

logger = logging.getLogger(__name__)


@dataclass
class BootResult:
    supervisor: ProcessSupervisor
    started: list[dict[str, Any]] = field(default_factory=list)

    @property
    def pids(self) -> list[int]:
        return [entry["pid"] for entry in self.started]


def boot(config: ProcvisorConfig, supervisor: ProcessSupervisor | None = None) -> BootResult:
    """Create (or reuse) a supervisor and start the configured workers.

    Raises:
        InvalidWorkerType: If a worker import string cannot be resolved.
        SpawnError, HandshakeTimeout, TableFullError: From the supervisor.
    """
    if supervisor is None:
        supervisor = ProcessSupervisor(config.supervisor)
    result = BootResult(supervisor=supervisor)

    for spec in config.processes:
        pid = supervisor.spawn(resolve_worker(spec.worker), spec.args)
        result.started.append(_entry(spec, pid=pid))

    for spec in config.tcp_processes:
        spawned = supervisor.spawn_tcp(resolve_worker(spec.worker), spec.args)
        result.started.append(_entry(spec, **spawned))

    for spec in config.unix_processes:
        spawned = supervisor.spawn_unix(resolve_worker(spec.worker), spec.args)
        result.started.append(_entry(spec, **spawned))

    logger.info("Boot complete: %d workers started", len(result.started))
    return result


def _entry(spec: WorkerSpec, **facts: Any) -> dict[str, Any]:
    logger.info("Started %s: %s", spec.worker, facts)
    return {"worker": spec.worker, **facts}
