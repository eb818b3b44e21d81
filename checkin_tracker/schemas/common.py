"""
Error envelope shared by every endpoint, for the OpenAPI docs.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """`{code, message, details}` returned for all 4xx/5xx responses."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


STORAGE_ERRORS: dict[int | str, dict[str, Any]] = {
    503: {
        "model": ErrorResponse,
        "description": "STORAGE_UNAVAILABLE (not ready / unreachable) or STORAGE_BUSY (retry).",
    },
}
