"""Domain errors and their HTTP translation."""
import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from taskflow.config import settings
from taskflow.logger import get_logger

log = get_logger("errors")


class TaskflowError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TaskflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(TaskflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication error"


class AuthorizationError(TaskflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Permission denied"


class NotFoundError(TaskflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(TaskflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"


class AlreadyMemberError(ConflictError):
    default_message = "User is already a member of this project"


class InviteCodeGenerationError(ConflictError):
    default_message = "Could not generate a unique invite code"


class ConcurrentUpdateError(TaskflowError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The resource was modified by another request, reload and retry"


async def _taskflow_error_handler(request: Request, exc: TaskflowError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _stale_data_handler(request: Request, exc: StaleDataError):
    log.warning("Concurrent update rejected", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": ConcurrentUpdateError.default_message},
    )


async def _integrity_error_handler(request: Request, exc: IntegrityError):
    log.warning("Storage constraint violated", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "The change conflicts with existing data"},
    )


async def _unhandled_error_handler(request: Request, exc: Exception):
    content = {"detail": "Internal server error", "error": str(exc)}
    if settings.DEBUG:
        content["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskflowError, _taskflow_error_handler)
    app.add_exception_handler(StaleDataError, _stale_data_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
