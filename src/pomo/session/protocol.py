# src/pomo/session/protocol.py

"""
Wire format of the status socket.

Every message is one UTF-8 JSON object terminated by a newline, so a reader
always knows where a message ends without waiting for the connection to
close. Readers ignore fields they do not know.

    request:  {"version": 1, "kind": "status" | "stop"}
    response: {"version": 1, "ok": true,  "status": {...}}
              {"version": 1, "ok": false, "error": "<kind>", "message": "..."}
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from ..errors import PomoError, ProtocolFailure, error_from_kind
from .runtime import SessionStatus

PROTOCOL_VERSION = 1
MAX_MESSAGE_BYTES = 64 * 1024


class RequestKind(StrEnum):
    STATUS = "status"
    STOP = "stop"


def encode_message(payload: dict[str, Any]) -> bytes:
    data = json.dumps({"version": PROTOCOL_VERSION, **payload}, ensure_ascii=False, separators=(",", ":"))
    raw = data.encode("utf-8") + b"\n"
    if len(raw) > MAX_MESSAGE_BYTES:
        raise ProtocolFailure(f"message too large ({len(raw)} bytes)")
    return raw


def decode_message(line: bytes) -> dict[str, Any]:
    if not line:
        raise ProtocolFailure("empty message (peer closed the connection)")
    if not line.endswith(b"\n"):
        raise ProtocolFailure("truncated message (missing terminator)")
    if len(line) > MAX_MESSAGE_BYTES:
        raise ProtocolFailure(f"message too large ({len(line)} bytes)")
    try:
        payload = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolFailure(f"malformed message: {e}") from e
    if not isinstance(payload, dict):
        raise ProtocolFailure("malformed message: expected a JSON object")
    return payload


def encode_request(kind: RequestKind) -> bytes:
    return encode_message({"kind": kind.value})


def parse_request(line: bytes) -> RequestKind:
    payload = decode_message(line)
    raw = payload.get("kind")
    try:
        return RequestKind(str(raw))
    except ValueError:
        raise ProtocolFailure(f"unknown request kind: {raw!r}") from None


def encode_status(status: SessionStatus) -> bytes:
    return encode_message({"ok": True, "status": status.to_dict()})


def encode_error(err: PomoError) -> bytes:
    return encode_message({"ok": False, "error": err.kind, "message": str(err)})


def parse_response(line: bytes) -> SessionStatus:
    """Decode a response; an error response is raised as the matching PomoError."""
    payload = decode_message(line)
    if payload.get("ok") is True:
        status = payload.get("status")
        if not isinstance(status, dict):
            raise ProtocolFailure("malformed response: missing status")
        try:
            return SessionStatus.from_dict(status)
        except (TypeError, ValueError) as e:
            raise ProtocolFailure(f"malformed status: {e}") from e
    raise error_from_kind(payload.get("error"), str(payload.get("message") or "request failed"))
