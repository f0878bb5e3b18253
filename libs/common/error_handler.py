"""Global exception handlers for consistent JSON error responses."""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from libs.common.errors import ErrorCode, ServiceError
from libs.common.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.VALIDATION: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INSUFFICIENT_STOCK: 400,
    ErrorCode.INVALID_STATE_TRANSITION: 409,
    ErrorCode.GATEWAY_FAILURE: 502,
    ErrorCode.CREATION_FAILED: 500,
    ErrorCode.INTERNAL: 500,
}


def error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": error}
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.code.value,
        )
    return error_response(status_code, exc.to_dict())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        422,
        {
            "code": ErrorCode.VALIDATION.value,
            "message": "Request validation failed",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception on %s %s", request.method, request.url.path
    )
    return error_response(
        500,
        {"code": ErrorCode.INTERNAL.value, "message": "An unexpected error occurred"},
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the domain, validation and catch-all handlers on ``app``."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
