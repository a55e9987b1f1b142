"""
Error envelope shared by every route's documented failure responses.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """One entry of `details.errors` on a 422 VALIDATION_ERROR."""
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    """`{code, message, details}`; branch on `code`, never on `message`."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
