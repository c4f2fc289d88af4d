import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas.generic_response import ErrorResponse

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException that also carries a machine-readable code."""

    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, detail: str, status_code: int = None, code: str = None, headers: dict = None):
        super().__init__(status_code=status_code or self.status_code, detail=detail, headers=headers)
        if code:
            self.code = code


class InvalidFormatError(ApiError):
    status_code = 400
    code = "INVALID_FORMAT"


class VerificationRequiredError(ApiError):
    status_code = 400
    code = "VERIFICATION_REQUIRED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class DuplicateKeyError(ApiError):
    status_code = 409
    code = "DUPLICATE_KEY"


class UnauthenticatedError(ApiError):
    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, detail: str, code: str = None):
        super().__init__(detail, code=code, headers={"WWW-Authenticate": "Bearer"})


def error_body(detail: str, code: str) -> dict:
    return ErrorResponse(error=detail, code=code).model_dump(by_alias=True)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.detail, exc.code), headers=exc.headers)


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail), "HTTP_ERROR"), headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(status_code=400, content=error_body("; ".join(parts), InvalidFormatError.code))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error", ApiError.code))
