"""
Custom exception hierarchy for the Aletheia API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

UpstreamAIError is internal: services catch it and substitute an
in-domain fallback, so it never reaches a client.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AletheiaException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(AletheiaException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any):
        self.code = f"{resource.upper()}_NOT_FOUND"
        super().__init__(
            message=f"{resource.capitalize()} {resource_id} not found.",
            details={"id": str(resource_id)},
        )


class UsernameTakenError(AletheiaException):
    http_status = status.HTTP_409_CONFLICT
    code = "USERNAME_TAKEN"

    def __init__(self, username: str):
        super().__init__(
            message=f"Username '{username}' already exists.",
            details={"username": username},
        )


class InvalidCredentialsError(AletheiaException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__(message="Invalid credentials.")


class ForbiddenError(AletheiaException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class InvalidActionError(AletheiaException):
    """Well-formed request that the domain refuses (self-follow, foreign parent comment...)."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_ACTION"


class QuestAlreadyCompletedError(AletheiaException):
    http_status = status.HTTP_409_CONFLICT
    code = "QUEST_ALREADY_COMPLETED"

    def __init__(self, quest_id: int):
        super().__init__(
            message=f"Quest {quest_id} is already completed.",
            details={"quest_id": quest_id},
        )


class QuestExpiredError(AletheiaException):
    http_status = status.HTTP_409_CONFLICT
    code = "QUEST_EXPIRED"

    def __init__(self, quest_id: int, expires_at: str):
        super().__init__(
            message=f"Quest {quest_id} expired at {expires_at}.",
            details={"quest_id": quest_id, "expires_at": expires_at},
        )


class HabitAlreadyTrackedError(AletheiaException):
    http_status = status.HTTP_409_CONFLICT
    code = "HABIT_ALREADY_TRACKED"

    def __init__(self, habit_id: int, day: str):
        super().__init__(
            message=f"Habit {habit_id} was already tracked on {day}.",
            details={"habit_id": habit_id, "day": day},
        )


class StaleProfileError(AletheiaException):
    """The profile row changed under the caller; client must re-read and retry."""
    http_status = status.HTTP_409_CONFLICT
    code = "STALE_PROFILE"

    def __init__(self, user_id: str, current_version: int | None = None,
                 stats: dict[str, Any] | None = None):
        details: dict[str, Any] = {"user_id": user_id}
        if current_version is not None:
            details["version"] = current_version
        if stats is not None:
            details["stats"] = stats
        super().__init__(
            message=f"Profile {user_id} was modified concurrently.",
            details=details,
        )


class UpstreamAIError(AletheiaException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "UPSTREAM_AI_ERROR"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def aletheia_exception_handler(request: Request, exc: AletheiaException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
