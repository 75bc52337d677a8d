# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0
"""
procvisor: supervise worker processes that serve request/response
messages over a duplex channel, a Unix domain socket or TCP.
"""

from __future__ import annotations

__version__ = "0.1.0"
