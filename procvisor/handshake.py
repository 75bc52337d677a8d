# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Ephemeral-port handshake message.

A TCP worker asked to bind port 0 sends exactly one
``{"port": <int>}`` JSON message over its duplex channel once it is
listening, so the supervisor can learn the OS-assigned port.
"""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass
class HandshakeMessage:
    """Port report from a TCP worker to its supervisor."""

    port: int

    def to_json(self) -> str:
        """Serialize to a JSON document."""
        return json.dumps({"port": self.port})

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_json(cls, raw: str | bytes) -> HandshakeMessage:
        """Deserialize, validating that ``port`` is a usable TCP port.

        Raises:
            ValueError: If *raw* is not a valid handshake message.
        """
        data = json.loads(raw)
        if not isinstance(data, dict) or "port" not in data:
            raise ValueError(f"Handshake message without port: {raw!r}")
        port = data["port"]
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ValueError(f"Handshake port out of range: {port!r}")
        return cls(port=port)
