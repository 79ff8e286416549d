from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import logging

from imagehost.core.exceptions import (
    ImageHostError,
    InvalidKeyError,
    ObjectNotFoundError,
    StoreUnavailableError,
    TargetExistsError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    InvalidKeyError: status.HTTP_400_BAD_REQUEST,
    ObjectNotFoundError: status.HTTP_404_NOT_FOUND,
    TargetExistsError: status.HTTP_409_CONFLICT,
    VersionConflictError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(ImageHostError)
    async def image_host_error_handler(request: Request, exc: ImageHostError):
        status_code = _STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app
