"""Test helper functions."""

import base64
import json
from io import BytesIO
from typing import Any, Dict, Optional
from unittest.mock import MagicMock, Mock


def make_query_mock(data: Optional[list] = None) -> MagicMock:
    """Supabase query builder whose chained calls all return itself."""
    query = MagicMock()
    for method in ("select", "insert", "update", "eq", "order", "limit", "is_"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=data if data is not None else [])
    return query


def make_supabase_mock(data: Optional[list] = None) -> MagicMock:
    """Supabase client whose table() returns a chained query mock."""
    client = MagicMock()
    client.table.return_value = make_query_mock(data)
    client.rpc.return_value.execute.return_value = MagicMock(data=None)
    return client


def encode_audio(data: bytes = b"RIFF....WAVEfmt ") -> str:
    """Base64 form of an audio payload."""
    return base64.b64encode(data).decode("ascii")


def make_handler(
    handler_cls,
    body: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    path: str = "/"
):
    """Build an endpoint handler without a socket, ready for do_GET/do_POST."""
    raw = json.dumps(body).encode("utf-8") if body is not None else b""
    h = handler_cls.__new__(handler_cls)
    h.headers = {"Content-Length": str(len(raw)), **(headers or {})}
    h.rfile = BytesIO(raw)
    h.wfile = BytesIO()
    h.path = path
    h.send_response = Mock()
    h.send_header = Mock()
    h.end_headers = Mock()
    return h


def response_status(h) -> int:
    return h.send_response.call_args[0][0]


def response_json(h) -> Dict[str, Any]:
    return json.loads(h.wfile.getvalue().decode("utf-8"))
