"""Standard response envelope: status codes, builder and per-request responder."""

from servermon.responses.body import build
from servermon.responses.responder import Responder, get_responder
from servermon.responses.status import ResponseStatus

__all__ = ["ResponseStatus", "Responder", "build", "get_responder"]
