"""Error taxonomy and the JSON envelope every route answers failures with.

    InvalidParameter   malformed or missing caller input            -> 400
    UpstreamError      third-party call failed or answered garbage  -> 500
                       (or the upstream status, once forwarded)
    DeadlineExceeded   upstream call or aggregate ran out of time   -> 504
    NoResults          a valid empty outcome                        -> 200
    anything else      logged with traceback                        -> 500
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidParameter(ApiError):
    status_code = 400


class NoResults(ApiError):
    status_code = 200


class UpstreamError(ApiError):
    status_code = 500

    def __init__(self, message: str, service: str = "upstream", upstream_status: int | None = None,
                 status_code: int | None = None):
        super().__init__(message, status_code)
        self.service = service
        self.upstream_status = upstream_status

    def forwarded(self) -> "UpstreamError":
        """Same failure, answered with the upstream's own status when it has one."""
        return type(self)(
            self.message,
            service=self.service,
            upstream_status=self.upstream_status,
            status_code=self.upstream_status or self.status_code,
        )


class DeadlineExceeded(UpstreamError):
    status_code = 504


def error_envelope(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


async def _api_error_handler(request: Request, exc: ApiError):
    if isinstance(exc, UpstreamError):
        logger.warning("%s failed on %s: %s", exc.service, request.url.path, exc.message)
    return error_envelope(exc.message, exc.status_code)


async def _validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
    return error_envelope(f"Missing or invalid parameters: {', '.join(fields)}", 400)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_envelope(str(exc.detail), exc.status_code)


async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return error_envelope("Internal server error", 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
