"""Helpers shared by the Vercel request handlers."""

import asyncio
import json
from http.server import BaseHTTPRequestHandler
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion from a synchronous handler."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = None
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def read_json_body(request: BaseHTTPRequestHandler) -> dict:
    """
    Read and decode a JSON object body.

    Raises ValueError for a body that is not a JSON object.
    """
    content_length = int(request.headers.get('Content-Length', 0))
    raw_body = request.rfile.read(content_length).decode('utf-8') if content_length > 0 else ""
    if not raw_body:
        return {}
    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def send_json(request: BaseHTTPRequestHandler, status: int, payload: Any) -> None:
    request.send_response(status)
    request.send_header('Content-Type', 'application/json')
    request.end_headers()
    request.wfile.write(json.dumps(payload).encode('utf-8'))
