import logging
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adaptiq.core.logging import request_id_var

logger = logging.getLogger(__name__)


class QuizEngineError(Exception):
    """Base class for errors the quiz engine surfaces to its caller."""

    code = "quiz_engine_error"
    status_code = 500
    retryable = False


class EntityNotFoundError(QuizEngineError):
    """A student, assignment or subtopic content record required to start a session is missing."""

    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class FinalizationError(QuizEngineError):
    """The atomic write of session analytics failed; nothing was persisted and the caller may retry."""

    code = "finalization_failed"
    status_code = 503
    retryable = True


_HTTP_CODES = {400: "bad_request", 404: "not_found", 405: "method_not_allowed", 409: "conflict", 429: "rate_limited"}


def error_response(*, code: str, message: str, status_code: int, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "request_id": request_id_var.get(),
                "details": details,
            },
        },
    )


async def quiz_engine_exception_handler(request: Request, exc: QuizEngineError):
    if exc.status_code >= 500:
        logger.error("Quiz engine failure on %s %s: %s", request.method, request.url.path, exc)
    return error_response(
        code=exc.code,
        message=str(exc),
        status_code=exc.status_code,
        details={"retryable": exc.retryable},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(
        code=_HTTP_CODES.get(exc.status_code, "http_error"),
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=jsonable_encoder(exc.errors()),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(code="internal_error", message="Internal server error", status_code=500)


async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request_id
    return response


def register_error_handling(app: FastAPI) -> None:
    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(QuizEngineError, quiz_engine_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
