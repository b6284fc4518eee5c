"""Maps error codes to HTTP responses for every API route."""

from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from mcp_registry.models.errors import ErrorCode, ErrorDetail, RegistryError
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.SERVER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TOOL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.DUPLICATE_SERVER: status.HTTP_409_CONFLICT,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVOCATION_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Proxy responses carry an explicit success flag, including on errors.
PROXY_PATH_PREFIX = "/api/proxy/"


def status_for(code: ErrorCode | None) -> int:
    if code is None:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(
    code: ErrorCode,
    message: str,
    details: Any | None = None,
    *,
    proxy: bool = False,
    status_code: int | None = None,
) -> JSONResponse:
    body = ErrorDetail(error=message, code=code, details=details).model_dump(mode="json", exclude_none=True)
    content: dict[str, Any] = {"success": False, **body} if proxy else body
    return JSONResponse(content=content, status_code=status_code or status_for(code))


async def registry_error_handler(request: Request, exc: Exception) -> JSONResponse:
    exc = cast(RegistryError, exc)
    log = logger.error if exc.code == ErrorCode.INTERNAL_ERROR else logger.warning
    log("api_request_failed", path=request.url.path, error_code=exc.code.value, error=exc.message)
    return error_response(
        exc.code, exc.message, exc.details, proxy=request.url.path.startswith(PROXY_PATH_PREFIX)
    )


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    exc = cast(RequestValidationError, exc)
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.info("api_validation_failed", path=request.url.path, error_count=len(details))
    return error_response(
        ErrorCode.VALIDATION_ERROR,
        "Validation failed",
        details,
        proxy=request.url.path.startswith(PROXY_PATH_PREFIX),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("api_unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return error_response(
        ErrorCode.INTERNAL_ERROR,
        "Internal server error",
        proxy=request.url.path.startswith(PROXY_PATH_PREFIX),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistryError, registry_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
