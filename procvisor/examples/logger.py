# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Unix-socket worker that appends every request to a log file."""

from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path

from procvisor.worker.base import UnixWorker

PREVIEW_CHARS = 30


class LoggerWorker(UnixWorker):
    """Append ``[YYYY-mm-dd HH:MM:SS] <message>`` lines to ``args["log_file"]``."""

    name = "logger"

    @property
    def log_file(self) -> Path:
        raw = self.args.get("log_file")
        return Path(raw) if raw else Path(tempfile.gettempdir()) / "procvisor.log"

    def process_message(self, data: bytes) -> bytes | None:
        text = data.decode("utf-8", errors="replace")
        stamp = datetime.now().strftime("[%Y-%m-%d %H:%M:%S] ")

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a", encoding="utf-8") as fh:
            fh.write(stamp + text + "\n")

        preview = text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")
        return f"Logged: {preview}".encode("utf-8")
