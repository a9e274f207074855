"""Maps domain errors to HTTP responses.

Business failures are returned with their kind and messages. Anything else is
logged with its traceback and returned as a bare INTERNAL error.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

from storefront.errors import ErrorKind, error_kind

logger = structlog.get_logger(__name__)

HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PRICE_CHANGED: 409,
    ErrorKind.STOCK_UNAVAILABLE: 409,
    ErrorKind.STATE_TRANSITION_INVALID: 422,
    ErrorKind.INSUFFICIENT_POINTS: 422,
    ErrorKind.INTERNAL: 500,
}


def _messages(exc: Exception) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    return {"_entity": [str(exc)]}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    kind = error_kind(exc)
    logger.info("request_rejected", path=request.url.path, error=kind.value)
    return JSONResponse(status_code=HTTP_STATUS[kind], content={"error": kind.value, "messages": _messages(exc)})


async def invalid_operation_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, error=ErrorKind.CONFLICT.value)
    return JSONResponse(status_code=409, content={"error": ErrorKind.CONFLICT.value, "messages": _messages(exc)})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": ErrorKind.INTERNAL.value})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, domain_error_handler)
    app.add_exception_handler(ObjectNotFoundError, domain_error_handler)
    app.add_exception_handler(InvalidOperationError, invalid_operation_handler)
    app.add_exception_handler(Exception, internal_error_handler)
