"""Exception handlers shared by every service app."""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from libs.common.exceptions import ServiceError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = status.HTTP_200_OK if exc.treat_as_success else exc.status_code
    if status_code >= 500:
        logger.error(
            "Service error on %s %s: %s", request.method, request.url.path, exc.message
        )
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(exc.to_dict())
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred",
            "request_id": get_request_id(),
        },
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register domain and fallback exception handlers on ``app``."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
