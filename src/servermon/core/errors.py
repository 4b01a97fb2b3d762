"""Application exceptions carrying an envelope status."""

from typing import Any, Optional

from servermon.responses.status import HTTP_STATUS_CODES, ResponseStatus


class AppError(Exception):
    """Base exception for all app-level errors."""

    def __init__(
        self,
        kind: ResponseStatus,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        data: Optional[dict[str, Any]] = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code or HTTP_STATUS_CODES[kind]
        self.data = data or {}
        super().__init__(message or kind.value)

    def to_payload(self) -> dict[str, Any]:
        """Payload for the envelope builder."""
        return {"message": self.message, "data": self.data}


class ServerError(AppError):
    """Raised when an OS or runtime reading fails."""

    def __init__(self, message: str, data: Optional[dict[str, Any]] = None):
        super().__init__(ResponseStatus.SERVER_ERROR, message=message, data=data)
