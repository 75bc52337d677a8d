from __future__ import annotations
# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Timezone-aware datetime helpers.

Process records are stamped in UTC so that timestamps written by the
supervisor and read back by workers compare cleanly.
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return current time as timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Ensure *dt* is timezone-aware.  Naive datetimes are assumed UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
