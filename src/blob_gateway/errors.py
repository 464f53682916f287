"""Exception taxonomy of the gateway and the FastAPI handlers that map it to HTTP."""
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", key: str = None):
        super().__init__(message)
        self.message = message
        self.key = key


class ClientError(GatewayError):
    """Bad method, missing or malformed parameters or form."""

    status_code = status.HTTP_400_BAD_REQUEST


class PayloadTooLargeError(ClientError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class NotFoundError(GatewayError):
    """No object stored under the requested key."""

    status_code = status.HTTP_404_NOT_FOUND


class StoreError(GatewayError):
    """Primary store I/O failure during open, read, create or write."""


class DerivationError(GatewayError):
    """Empty or undecodable image payload, or a resize/encode failure."""


class MirrorError(Exception):
    """
    Secondary store write failure.

    Raised and handled inside the mirror task only; it never reaches a
    request handler.
    """

    def __init__(self, message: str, key: str = None, bucket: str = None):
        super().__init__(message)
        self.key = key
        self.bucket = bucket


async def handle_gateway_errors(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message or exc.__class__.__name__},
    )


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed query parameters, headers and forms as 400 rather than 422."""
    logger.warning("invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Bad request"},
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Turn any uncaught exception into a 500 response."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception("unhandled error while serving %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
