"""Request body size caps per media type."""

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from servermon.responses.body import build
from servermon.responses.status import ResponseStatus

PAYLOAD_TOO_LARGE = 413
TOO_LARGE_MESSAGE = "Request entity too large"


class BodySizeLimitMiddleware:
    """
    Reject bodies of ``media_type`` larger than ``max_bytes`` with 413.

    A declared Content-Length over the cap is refused before the app runs.
    Chunked bodies are counted as they are read; crossing the cap raises a
    413 HTTPException inside the handler's read.
    """

    def __init__(self, app: ASGIApp, media_type: str, max_bytes: int):
        self.app = app
        self.media_type = media_type
        self.max_bytes = max_bytes

    def _applies(self, headers: Headers) -> bool:
        content_type = headers.get("content-type", "")
        return content_type.split(";", 1)[0].strip().lower() == self.media_type

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        if not self._applies(headers):
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
            response = JSONResponse(
                status_code=PAYLOAD_TOO_LARGE,
                content=build(ResponseStatus.BAD_REQUEST, {"message": TOO_LARGE_MESSAGE}),
            )
            await response(scope, receive, send)
            return

        received = 0

        async def receive_with_limit() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise HTTPException(
                        status_code=PAYLOAD_TOO_LARGE,
                        detail=TOO_LARGE_MESSAGE,
                    )
            return message

        await self.app(scope, receive_with_limit, send)
