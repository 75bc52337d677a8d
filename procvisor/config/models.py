# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Central configuration module for procvisor.

Defines Pydantic models for config.json and provides load / save helpers
with a module-level cache.  The supervisor never reads configuration on
its own: callers pass a :class:`SupervisorConfig` value explicitly.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from procvisor.exceptions import ConfigValidationError

logger = logging.getLogger("procvisor.config")

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SupervisorConfig(BaseModel):
    """Limits and timings for a ProcessSupervisor instance."""

    max_processes: int = 128
    enable_coroutine: bool = False
    run_dir: Path | None = None  # None = <data_dir>/run
    socket_dir: Path | None = None  # None = <run_dir>/sockets
    table_path: Path | None = None  # None = <run_dir>/process_table.sqlite3
    handshake_timeout: float = 3.0  # seconds
    handshake_poll_interval: float = 0.01  # seconds
    poll_interval: float = 0.01  # worker tick quantum in seconds
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _validate_limits(self) -> SupervisorConfig:
        if self.max_processes < 1:
            raise ValueError("max_processes must be at least 1")
        if self.handshake_poll_interval <= 0 or self.handshake_timeout <= 0:
            raise ValueError("handshake timings must be positive")
        if self.handshake_poll_interval > self.handshake_timeout:
            raise ValueError(
                f"handshake_poll_interval ({self.handshake_poll_interval}) must not "
                f"exceed handshake_timeout ({self.handshake_timeout})"
            )
        return self

    def resolved_run_dir(self) -> Path:
        if self.run_dir is not None:
            return self.run_dir
        from procvisor.paths import get_run_dir

        return get_run_dir()

    def resolved_socket_dir(self) -> Path:
        if self.socket_dir is not None:
            return self.socket_dir
        if self.run_dir is not None:
            return self.run_dir / "sockets"
        from procvisor.paths import get_socket_dir

        return get_socket_dir()

    def resolved_table_path(self) -> Path:
        if self.table_path is not None:
            return self.table_path
        return self.resolved_run_dir() / "process_table.sqlite3"


class WorkerSpec(BaseModel):
    """A worker to launch at boot: import string plus constructor args."""

    worker: str  # "package.module:ClassName"
    args: dict[str, Any] = {}

    @field_validator("worker")
    @classmethod
    def _validate_import_string(cls, value: str) -> str:
        module, sep, qualname = value.partition(":")
        if not sep or not module or not qualname:
            raise ValueError(
                f"worker must be an import string 'module:ClassName', got {value!r}"
            )
        return value


class ProcvisorConfig(BaseModel):
    supervisor: SupervisorConfig = SupervisorConfig()
    processes: list[WorkerSpec] = []
    unix_processes: list[WorkerSpec] = []
    tcp_processes: list[WorkerSpec] = []


# ---------------------------------------------------------------------------
# Singleton cache
# ---------------------------------------------------------------------------

_config: ProcvisorConfig | None = None
_config_path: Path | None = None
_config_mtime: float = 0.0


def invalidate_cache() -> None:
    """Reset the module-level cache."""
    global _config, _config_path, _config_mtime
    _config = None
    _config_path = None
    _config_mtime = 0.0


def get_config_path(data_dir: Path | None = None) -> Path:
    """Return the path to config.json inside *data_dir*."""
    if data_dir is None:
        from procvisor.paths import get_data_dir

        data_dir = get_data_dir()
    return data_dir / "config.json"


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


def load_config(path: Path | None = None) -> ProcvisorConfig:
    """Load configuration from disk, returning the cached instance when possible.

    When the file does not exist the default configuration is returned.
    The cache is invalidated when the file's mtime changes.

    Raises:
        ConfigValidationError: If the file is not valid JSON or does not
            match the schema.
    """
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    if _config is not None and _config_path == path:
        try:
            disk_mtime = path.stat().st_mtime
        except OSError:
            disk_mtime = 0.0
        if disk_mtime == _config_mtime:
            return _config
        logger.debug("Config file changed on disk (mtime %.3f -> %.3f); reloading", _config_mtime, disk_mtime)

    if path.is_file():
        logger.debug("Loading config from %s", path)
        try:
            data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
            config = ProcvisorConfig.model_validate(data)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", path, exc)
            raise ConfigValidationError(f"Invalid JSON in {path}: {exc}") from exc
        except ValidationError as exc:
            logger.error("Invalid config in %s: %s", path, exc)
            raise ConfigValidationError(f"Invalid config in {path}: {exc}") from exc
    else:
        logger.info("Config file not found at %s; using defaults", path)
        config = ProcvisorConfig()

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
    return config


def save_config(config: ProcvisorConfig, path: Path | None = None) -> None:
    """Persist *config* to disk as pretty-printed JSON and refresh the cache."""
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    payload = config.model_dump(mode="json", exclude_none=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.debug("Config saved to %s", path)

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
