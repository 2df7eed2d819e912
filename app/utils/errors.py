# app/utils/errors.py
import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.services.errors import ClinicError

logger = logging.getLogger(__name__)


def server_error(message: str, exc: Exception) -> HTTPException:
    """
    Log an unexpected failure and build the 500 to raise in its place.

    The exception text only reaches the caller when DEBUG is on.
    """
    logger.exception("%s: %s", message, exc)
    detail = f"{message}: {str(exc)}" if settings.DEBUG else message
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
