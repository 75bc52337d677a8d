# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Client for the Unix/TCP wire contract: send, half-close, read until close."""

from __future__ import annotations

import argparse
import logging
import socket
import sys

logger = logging.getLogger(__name__)

READ_CHUNK = 8192


def send_message(sock: socket.socket, message: bytes) -> bytes:
    """Write *message*, signal end of request and read the full response."""
    sock.sendall(message)
    sock.shutdown(socket.SHUT_WR)
    chunks: list[bytes] = []
    while True:
        buffer = sock.recv(READ_CHUNK)
        if not buffer:
            break
        chunks.append(buffer)
    return b"".join(chunks)


def send_unix(path: str, message: bytes, timeout: float = 5.0) -> bytes:
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        sock.connect(path)
        return send_message(sock, message)


def send_tcp(host: str, port: int, message: bytes, timeout: float = 5.0) -> bytes:
    with socket.create_connection((host, port), timeout=timeout) as sock:
        return send_message(sock, message)


def parse_address(address: str) -> tuple[str, int]:
    """Split ``HOST:PORT`` (host defaults to 127.0.0.1 when omitted)."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Expected HOST:PORT, got {address!r}")
    return host or "127.0.0.1", int(port)


def cmd_send(args: argparse.Namespace) -> None:
    """Send one message to a worker and print its response."""
    message = args.message.encode("utf-8")
    try:
        if args.unix:
            response = send_unix(args.unix, message, timeout=args.timeout)
        else:
            host, port = parse_address(args.tcp)
            response = send_tcp(host, port, message, timeout=args.timeout)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        logger.debug("send failed", exc_info=True)
        print(f"Error: could not reach worker: {e}", file=sys.stderr)
        sys.exit(1)

    print(response.decode("utf-8", errors="replace"))
