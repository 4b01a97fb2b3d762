"""Per-request responder and the middleware that attaches it."""

from collections.abc import Mapping
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from servermon.responses.body import build
from servermon.responses.status import HTTP_STATUS_CODES, ResponseStatus

Payload = Optional[Mapping[str, Any]]


class Responder:
    """Turns envelope payloads into JSON responses with the matching HTTP status."""

    def send(self, kind: ResponseStatus, payload: Payload = None) -> JSONResponse:
        return JSONResponse(content=build(kind, payload), status_code=HTTP_STATUS_CODES[kind])

    def success(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.SUCCESS, payload)

    def failure(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.FAILURE, payload)

    def internal_server_error(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.SERVER_ERROR, payload)

    def bad_request(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.BAD_REQUEST, payload)

    def record_not_found(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.RECORD_NOT_FOUND, payload)

    def validation_error(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.VALIDATION_ERROR, payload)

    def unauthorized(self, payload: Payload = None) -> JSONResponse:
        return self.send(ResponseStatus.UNAUTHORIZED, payload)


class ResponseHandlerMiddleware:
    """
    Attach a fresh Responder to every HTTP request before routing.

    Handlers pick it up through the ``get_responder`` dependency.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            scope.setdefault("state", {})["responder"] = Responder()
        await self.app(scope, receive, send)


def get_responder(request: Request) -> Responder:
    """FastAPI dependency returning the responder attached by the middleware."""
    responder = getattr(request.state, "responder", None)
    if responder is None:
        # App mounted without ResponseHandlerMiddleware
        responder = Responder()
        request.state.responder = responder
    return responder
