# src/pomo/errors.py

"""
Error kinds shared by the store, the session runtime and the status socket.

Each error carries a short `kind` string so it can travel over the wire
and be rebuilt on the client side with error_from_kind().
"""

from __future__ import annotations


class PomoError(Exception):
    kind = "error"


class NotFound(PomoError):
    kind = "not_found"


class InvalidArgument(PomoError, ValueError):
    kind = "invalid_argument"


class EndpointUnavailable(PomoError):
    kind = "endpoint_unavailable"


class PersistenceFailure(PomoError):
    kind = "persistence_failure"


class ProtocolFailure(PomoError):
    kind = "protocol_failure"


_BY_KIND: dict[str, type[PomoError]] = {
    cls.kind: cls
    for cls in (NotFound, InvalidArgument, EndpointUnavailable, PersistenceFailure, ProtocolFailure)
}


def error_from_kind(kind: str | None, message: str) -> PomoError:
    cls = _BY_KIND.get(kind or "", PomoError)
    return cls(message)
