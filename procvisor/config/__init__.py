# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from procvisor.config.models import (
    ProcvisorConfig,
    SupervisorConfig,
    WorkerSpec,
    get_config_path,
    invalidate_cache,
    load_config,
    save_config,
)

__all__ = [
    "ProcvisorConfig",
    "SupervisorConfig",
    "WorkerSpec",
    "get_config_path",
    "invalidate_cache",
    "load_config",
    "save_config",
]
