# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Centralized path resolution for procvisor.

Runtime data directory can be overridden via the PROCVISOR_DATA_DIR
environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default runtime data directory
_DEFAULT_DATA_DIR = Path.home() / ".procvisor"


def get_data_dir() -> Path:
    """Return the runtime data directory, respecting PROCVISOR_DATA_DIR env var."""
    env_val = os.environ.get("PROCVISOR_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return _DEFAULT_DATA_DIR


def get_run_dir() -> Path:
    return get_data_dir() / "run"


def get_socket_dir() -> Path:
    return get_run_dir() / "sockets"


def get_log_dir() -> Path:
    return get_data_dir() / "logs"
