"""
Response status codes for the API envelope.
Every reply carries exactly one of these in its ``status`` field.
"""

import enum

from fastapi import status


class ResponseStatus(str, enum.Enum):
    """Outcome categories for API responses."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    SERVER_ERROR = "SERVER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"


HTTP_STATUS_CODES: dict[ResponseStatus, int] = {
    ResponseStatus.SUCCESS: status.HTTP_200_OK,
    ResponseStatus.FAILURE: status.HTTP_400_BAD_REQUEST,
    ResponseStatus.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ResponseStatus.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ResponseStatus.RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResponseStatus.VALIDATION_ERROR: 422,
    ResponseStatus.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
}


def status_for_http_code(status_code: int) -> ResponseStatus:
    """Pick the envelope status matching an HTTP error code."""
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return ResponseStatus.UNAUTHORIZED
    if status_code == status.HTTP_404_NOT_FOUND:
        return ResponseStatus.RECORD_NOT_FOUND
    if status_code == 422:
        return ResponseStatus.VALIDATION_ERROR
    if status_code >= 500:
        return ResponseStatus.SERVER_ERROR
    if status_code >= 400:
        return ResponseStatus.BAD_REQUEST
    return ResponseStatus.SUCCESS
