# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for the SQLite-backed process table."""

from __future__ import annotations

from pathlib import Path

import pytest

from procvisor.exceptions import TableFullError
from procvisor.schemas import ProcessRecord, ProcessStatus, TransportKind
from procvisor.supervisor.table import ProcessTable


def _record(pid: int, name: str = "echo", transport: TransportKind = TransportKind.STANDARD, **metadata):
    return ProcessRecord(pid=pid, name=name, transport=transport, metadata=metadata)


@pytest.fixture
def table(tmp_path: Path):
    t = ProcessTable.create(tmp_path / "table.sqlite3", capacity=3)
    yield t
    t.close()


# ── Basic operations ──────────────────────────────────────


class TestPutGet:
    def test_get_returns_stored_record(self, table: ProcessTable):
        table.put(100, _record(100, "logger", TransportKind.UNIX, socket_path="/tmp/x.sock"))

        record = table.get(100)
        assert record is not None
        assert record.pid == 100
        assert record.name == "logger"
        assert record.transport is TransportKind.UNIX
        assert record.status is ProcessStatus.STARTING
        assert record.metadata == {"socket_path": "/tmp/x.sock"}

    def test_started_at_round_trips_with_timezone(self, table: ProcessTable):
        original = _record(1)
        table.put(1, original)
        assert table.get(1).started_at == original.started_at

    def test_get_missing_returns_none(self, table: ProcessTable):
        assert table.get(999) is None

    def test_put_replaces_existing(self, table: ProcessTable):
        table.put(1, _record(1, "a"))
        table.put(1, _record(1, "b"))
        assert table.get(1).name == "b"
        assert len(table) == 1

    def test_len_and_contains(self, table: ProcessTable):
        table.put(1, _record(1))
        table.put(2, _record(2))
        assert len(table) == 2
        assert 1 in table
        assert 3 not in table
        assert "1" not in table


class TestRemove:
    def test_remove_present(self, table: ProcessTable):
        table.put(1, _record(1))
        assert table.remove(1) is True
        assert table.get(1) is None

    def test_remove_absent(self, table: ProcessTable):
        assert table.remove(1) is False


class TestUpdates:
    def test_set_status(self, table: ProcessTable):
        table.put(1, _record(1))
        assert table.set_status(1, ProcessStatus.RUNNING) is True
        assert table.get(1).status is ProcessStatus.RUNNING

    def test_set_status_missing(self, table: ProcessTable):
        assert table.set_status(1, ProcessStatus.RUNNING) is False

    def test_set_metadata_merges(self, table: ProcessTable):
        table.put(1, _record(1, "web", TransportKind.TCP, host="127.0.0.1", port=0))
        assert table.set_metadata(1, {"port": 43123}) is True
        assert table.get(1).metadata == {"host": "127.0.0.1", "port": 43123}

    def test_set_metadata_missing(self, table: ProcessTable):
        assert table.set_metadata(1, {"port": 1}) is False


class TestScan:
    def test_scan_lists_every_record(self, table: ProcessTable):
        table.put(1, _record(1, "a"))
        table.put(2, _record(2, "b"))

        entries = dict(table.scan())
        assert set(entries) == {1, 2}
        assert entries[2].name == "b"

    def test_scan_empty(self, table: ProcessTable):
        assert table.scan() == []


# ── Capacity ──────────────────────────────────────────────


class TestCapacity:
    def test_put_past_capacity_raises(self, table: ProcessTable):
        for pid in (1, 2, 3):
            table.put(pid, _record(pid))

        with pytest.raises(TableFullError):
            table.put(4, _record(4))
        assert 4 not in table
        assert len(table) == 3

    def test_replace_allowed_when_full(self, table: ProcessTable):
        for pid in (1, 2, 3):
            table.put(pid, _record(pid))
        table.put(2, _record(2, "renamed"))
        assert table.get(2).name == "renamed"

    def test_slot_freed_by_remove(self, table: ProcessTable):
        for pid in (1, 2, 3):
            table.put(pid, _record(pid))
        table.remove(1)
        table.put(4, _record(4))
        assert 4 in table

    def test_zero_capacity_rejected(self, tmp_path: Path):
        with pytest.raises(ValueError):
            ProcessTable(tmp_path / "t.sqlite3", capacity=0)


# ── Sharing between handles ───────────────────────────────


class TestSharing:
    def test_create_drops_stale_rows(self, tmp_path: Path):
        path = tmp_path / "t.sqlite3"
        with ProcessTable.create(path, capacity=2) as first:
            first.put(1, _record(1))

        with ProcessTable.create(path, capacity=2) as second:
            assert len(second) == 0

    def test_attach_sees_writes_and_capacity(self, tmp_path: Path):
        path = tmp_path / "t.sqlite3"
        with ProcessTable.create(path, capacity=7) as owner:
            with ProcessTable.attach(path) as viewer:
                owner.put(5, _record(5, "shared"))
                assert viewer.capacity == 7
                assert viewer.get(5).name == "shared"

                owner.remove(5)
                assert viewer.get(5) is None

    def test_attach_read_only_rejects_writes(self, tmp_path: Path):
        path = tmp_path / "t.sqlite3"
        with ProcessTable.create(path, capacity=2) as owner:
            owner.put(1, _record(1))
            with ProcessTable.attach(path) as viewer:
                with pytest.raises(PermissionError):
                    viewer.put(2, _record(2))
                with pytest.raises(PermissionError):
                    viewer.remove(1)
            assert 1 in owner

    def test_attach_writable_shares_capacity_limit(self, tmp_path: Path):
        path = tmp_path / "t.sqlite3"
        with ProcessTable.create(path, capacity=1) as owner:
            owner.put(1, _record(1))
            with ProcessTable.attach(path, read_only=False) as other:
                with pytest.raises(TableFullError):
                    other.put(2, _record(2))

    def test_attach_uninitialised_file(self, tmp_path: Path):
        with pytest.raises(ValueError, match="no stored capacity"):
            ProcessTable.attach(tmp_path / "empty.sqlite3")
