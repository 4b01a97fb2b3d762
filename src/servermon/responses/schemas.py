"""Pydantic schema of the response envelope (used for OpenAPI docs)."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from servermon.responses.status import ResponseStatus


class ResponseEnvelope(BaseModel):
    """Standardized API response."""

    status: ResponseStatus = Field(..., description="Outcome category")
    message: Any = Field(..., description="Human-readable message or diagnostic payload")
    data: Optional[Any] = Field(None, description="Attached data, null when empty")
