"""
Envelope builder.

Every API reply is shaped as ``{"status", "message", "data"}``:

    {
        "status": "SUCCESS",
        "message": "Your request is successfully executed",
        "data": null
    }

``build`` is pure: the same status and payload always give the same envelope.
"""

from collections.abc import Mapping
from typing import Any, Optional

from servermon.responses.status import ResponseStatus

DEFAULT_MESSAGES: dict[ResponseStatus, str] = {
    ResponseStatus.SUCCESS: "Your request is successfully executed",
    ResponseStatus.FAILURE: "Some error occurred while performing action.",
    ResponseStatus.SERVER_ERROR: "Internal server error.",
    ResponseStatus.BAD_REQUEST: "Request parameters are invalid or missing.",
    ResponseStatus.RECORD_NOT_FOUND: "Record(s) not found with specified criteria.",
    ResponseStatus.VALIDATION_ERROR: "Invalid Data, Validation Failed.",
    ResponseStatus.UNAUTHORIZED: "You are not authorized to access the request",
}


def _has_content(data: Any) -> bool:
    """True for non-empty mappings and lists; everything else counts as no data."""
    if isinstance(data, Mapping):
        return len(data) > 0
    if isinstance(data, (list, tuple)):
        return len(data) > 0
    return False


def build(kind: ResponseStatus, payload: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    """
    Build the envelope for ``kind``.

    Args:
        kind: outcome category
        payload: optional mapping with ``message`` and/or ``data``

    A missing or empty message falls back to the status default.
    Empty or missing data is always rendered as None, never ``{}``.
    """
    payload = payload or {}
    data = payload.get("data")
    return {
        "status": kind.value,
        "message": payload.get("message") or DEFAULT_MESSAGES[kind],
        "data": data if _has_content(data) else None,
    }
