"""Test helper functions."""

import json
from datetime import datetime, timedelta
from io import BytesIO
from typing import Any, Dict, Optional, Tuple

import httpx


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class MockSocket:
    """Socket feeding one raw HTTP request to a BaseHTTPRequestHandler."""

    def __init__(self, raw_request: bytes):
        self._rfile = BytesIO(raw_request)
        self.sent = bytearray()

    def makefile(self, *args, **kwargs):
        return self._rfile

    def sendall(self, data):
        self.sent.extend(data)

    def close(self):
        pass


def call_handler(
    handler_cls,
    method: str = "POST",
    path: str = "/",
    body: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, Dict[str, Any]]:
    """Run a Vercel BaseHTTPRequestHandler against a request and return (status, json body)."""
    payload = json.dumps(body).encode('utf-8') if body is not None else b""
    lines = [f"{method} {path} HTTP/1.1", "Connection: close", "Content-Type: application/json"]
    lines.append(f"Content-Length: {len(payload)}")
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    raw_request = ("\r\n".join(lines) + "\r\n\r\n").encode('utf-8') + payload

    sock = MockSocket(raw_request)
    handler_cls(sock, ("127.0.0.1", 8000), None)

    head, _, response_body = bytes(sock.sent).partition(b"\r\n\r\n")
    status = int(head.split(b" ", 2)[1])
    return status, json.loads(response_body.decode('utf-8')) if response_body else {}


def square_transport(routes: Dict[Tuple[str, str], Any]) -> httpx.MockTransport:
    """
    MockTransport answering Square requests from a route table.

    ``routes`` maps (method, path) to (status_code, json_body), or to an
    exception instance to raise. Unrouted requests get a 404.
    """
    def handle(request: httpx.Request) -> httpx.Response:
        route = routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errors": [{"category": "INVALID_REQUEST_ERROR", "code": "NOT_FOUND"}]})
        if isinstance(route, Exception):
            raise route
        status_code, body = route
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handle)
