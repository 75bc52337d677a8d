# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""TCP worker that answers raw HTTP/1.x requests.

With ``args["upstream"]`` set (e.g. ``"http://127.0.0.1:8000"``) each
request is forwarded there with httpx and the upstream response is
relayed back.  Without it, the worker answers ``200 OK`` with a JSON
body describing the request it received.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

import httpx

from procvisor.worker.base import TcpWorker

logger = logging.getLogger(__name__)

# Hop-by-hop or length headers that must not be copied verbatim.
_SKIP_REQUEST_HEADERS = frozenset({"host", "connection", "content-length", "keep-alive", "transfer-encoding"})
_SKIP_RESPONSE_HEADERS = frozenset({"connection", "content-length", "content-encoding", "transfer-encoding", "keep-alive"})


@dataclass
class HttpRequest:
    method: str = "GET"
    path: str = "/"
    version: str = "HTTP/1.1"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def parse_http_request(data: bytes) -> HttpRequest:
    """Parse a raw HTTP request.  Missing parts fall back to defaults."""
    head, _sep, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")

    request = HttpRequest(body=body)
    parts = lines[0].split(" ") if lines and lines[0] else []
    if len(parts) > 0:
        request.method = parts[0]
    if len(parts) > 1:
        request.path = parts[1]
    if len(parts) > 2:
        request.version = parts[2]

    for line in lines[1:]:
        name, colon, value = line.partition(":")
        if colon:
            request.headers[name.strip()] = value.strip()
    return request


def build_http_response(
    status: int,
    reason: str,
    body: bytes,
    headers: dict[str, str] | None = None,
) -> bytes:
    lines = [f"HTTP/1.1 {status} {reason}"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


class HttpProxyWorker(TcpWorker):
    """Minimal HTTP proxy: one request per connection."""

    name = "http-proxy"
    upstream_transport: httpx.BaseTransport | None = None  # None = httpx default

    def __init__(self, args, channel=None, **kwargs):
        super().__init__(args, channel, **kwargs)
        self.upstream: str | None = self.args.get("upstream")
        self.upstream_timeout = float(self.args.get("upstream_timeout", 10.0))

    def process_message(self, data: bytes) -> bytes | None:
        request = parse_http_request(data)
        if self.upstream:
            return self._forward(request)
        return self._describe(request)

    def _describe(self, request: HttpRequest) -> bytes:
        body = json.dumps({
            "success": True,
            "message": "Request proxied successfully",
            "request": {"method": request.method, "path": request.path},
        }).encode("utf-8")
        return build_http_response(200, "OK", body, {"Content-Type": "application/json"})

    def _forward(self, request: HttpRequest) -> bytes:
        headers = {
            name: value for name, value in request.headers.items()
            if name.lower() not in _SKIP_REQUEST_HEADERS
        }
        try:
            with httpx.Client(
                base_url=self.upstream,
                timeout=self.upstream_timeout,
                transport=self.upstream_transport,
            ) as client:
                response = client.request(
                    request.method, request.path, headers=headers, content=request.body or None,
                )
        except httpx.HTTPError as e:
            logger.warning("Upstream request failed: %s %s -> %s", request.method, request.path, e)
            body = json.dumps({"success": False, "error": str(e)}).encode("utf-8")
            return build_http_response(502, "Bad Gateway", body, {"Content-Type": "application/json"})

        relayed = {
            name: value for name, value in response.headers.items()
            if name.lower() not in _SKIP_RESPONSE_HEADERS
        }
        return build_http_response(response.status_code, response.reason_phrase, response.content, relayed)
