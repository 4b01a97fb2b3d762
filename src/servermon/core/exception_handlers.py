"""Global exception handlers: every error leaves the API as an envelope."""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from servermon.core.errors import AppError
from servermon.core.logging import get_logger
from servermon.responses.body import build
from servermon.responses.status import ResponseStatus, status_for_http_code

logger = get_logger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Handle AppError and convert to an envelope.

    {
        "status": "SERVER_ERROR",
        "message": "Unable to read CPU times",
        "data": {"error": "AccessDenied"}
    }
    """
    logger.warning(
        "app_error",
        status=exc.kind.value,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=build(exc.kind, exc.to_payload()))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and explicit HTTPExceptions."""
    kind = status_for_http_code(exc.status_code)
    logger.info(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    message = exc.detail if exc.status_code != 404 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=build(kind, {"message": message}),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=build(
            ResponseStatus.VALIDATION_ERROR,
            {"data": {"errors": jsonable_encoder(exc.errors())}},
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback and answer with a SERVER_ERROR envelope."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=build(ResponseStatus.SERVER_ERROR))


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
