# app/api/errors.py
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidError,
    NotFoundError,
    SchedulingError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: HTTPStatus.NOT_FOUND,
    ForbiddenError: HTTPStatus.FORBIDDEN,
    ConflictError: HTTPStatus.CONFLICT,
    InvalidError: HTTPStatus.UNPROCESSABLE_ENTITY,
}


def status_for(exc: SchedulingError) -> HTTPStatus:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return HTTPStatus.BAD_REQUEST


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        status_code = status_for(exc)
        logger.info(
            "%s %s rejected with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code},
        )
