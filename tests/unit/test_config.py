# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for configuration models and load/save helpers."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from procvisor.config import (
    ProcvisorConfig,
    SupervisorConfig,
    WorkerSpec,
    get_config_path,
    load_config,
    save_config,
)
from procvisor.exceptions import ConfigValidationError


# ── Models ────────────────────────────────────────────────


class TestSupervisorConfig:
    def test_defaults(self):
        config = SupervisorConfig()
        assert config.max_processes == 128
        assert config.enable_coroutine is False
        assert config.handshake_timeout == 3.0
        assert config.handshake_poll_interval == 0.01
        assert config.poll_interval == 0.01

    def test_paths_follow_data_dir(self, data_dir: Path):
        config = SupervisorConfig()
        assert config.resolved_run_dir() == data_dir.resolve() / "run"
        assert config.resolved_socket_dir() == data_dir.resolve() / "run" / "sockets"
        assert config.resolved_table_path() == data_dir.resolve() / "run" / "process_table.sqlite3"

    def test_explicit_run_dir(self, tmp_path: Path):
        config = SupervisorConfig(run_dir=tmp_path)
        assert config.resolved_socket_dir() == tmp_path / "sockets"
        assert config.resolved_table_path() == tmp_path / "process_table.sqlite3"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_processes": 0},
            {"handshake_timeout": 0},
            {"handshake_poll_interval": -1},
            {"handshake_timeout": 0.5, "handshake_poll_interval": 1.0},
        ],
    )
    def test_rejects_invalid_limits(self, overrides: dict):
        with pytest.raises(ValidationError):
            SupervisorConfig(**overrides)


class TestWorkerSpec:
    def test_valid(self):
        spec = WorkerSpec(worker="procvisor.examples.echo:EchoWorker", args={"a": 1})
        assert spec.args == {"a": 1}

    @pytest.mark.parametrize("value", ["EchoWorker", "module:", ":Class"])
    def test_invalid_import_string(self, value: str):
        with pytest.raises(ValidationError):
            WorkerSpec(worker=value)


# ── Load / Save ───────────────────────────────────────────


class TestLoadSave:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "config.json")
        assert config == ProcvisorConfig()

    def test_default_path_in_data_dir(self, data_dir: Path):
        assert get_config_path() == data_dir.resolve() / "config.json"

    def test_round_trip_and_cache(self, tmp_path: Path):
        path = tmp_path / "config.json"
        config = ProcvisorConfig(
            supervisor=SupervisorConfig(max_processes=4),
            unix_processes=[WorkerSpec(worker="procvisor.examples.logger:LoggerWorker")],
        )
        save_config(config, path)

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["supervisor"]["max_processes"] == 4
        assert "run_dir" not in on_disk["supervisor"]

        loaded = load_config(path)
        assert loaded is config
        assert load_config(path) is loaded

    def test_reload_when_file_changes(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"supervisor": {"max_processes": 2}}), encoding="utf-8")
        assert load_config(path).supervisor.max_processes == 2

        path.write_text(json.dumps({"supervisor": {"max_processes": 9}}), encoding="utf-8")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert load_config(path).supervisor.max_processes == 9

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="Invalid JSON"):
            load_config(path)

    def test_schema_violation(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"processes": [{"worker": "nocolon"}]}), encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="Invalid config"):
            load_config(path)
