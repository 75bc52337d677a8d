# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for procvisor.

Provides filesystem isolation, config cache management and supervisor
instances that are always shut down, so no worker process outlives the
test that started it.
"""

from __future__ import annotations

import shutil
import signal
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from procvisor.config import SupervisorConfig, invalidate_cache
from procvisor.supervisor.manager import ProcessSupervisor


# ── Isolation ─────────────────────────────────────────────


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point PROCVISOR_DATA_DIR at a per-test directory and reset the config cache."""
    data = tmp_path / "procvisor"
    data.mkdir()
    monkeypatch.setenv("PROCVISOR_DATA_DIR", str(data))
    invalidate_cache()
    yield data
    invalidate_cache()


@pytest.fixture
def short_tmp() -> Iterator[Path]:
    """A temp directory with a short path.

    Unix socket paths are limited to ~108 bytes, which pytest's
    ``tmp_path`` can exceed.
    """
    path = Path(tempfile.mkdtemp(prefix="pv"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def restore_signals() -> Iterator[None]:
    """Restore SIGTERM/SIGINT handlers replaced by workers built in-process."""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGINT)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


# ── Supervisor ────────────────────────────────────────────


@pytest.fixture
def supervisor_config(short_tmp: Path) -> SupervisorConfig:
    return SupervisorConfig(
        run_dir=short_tmp,
        socket_dir=short_tmp / "s",
        table_path=short_tmp / "table.sqlite3",
        handshake_timeout=10.0,
    )


@pytest.fixture
def supervisor(supervisor_config: SupervisorConfig) -> Iterator[ProcessSupervisor]:
    sup = ProcessSupervisor(supervisor_config)
    try:
        yield sup
    finally:
        sup.shutdown()
