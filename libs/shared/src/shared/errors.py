from __future__ import annotations

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

from .request_context import REQUEST_ID_HEADER
from .schemas import ErrorResponse

NO_STORE = "no-store, no-cache, must-revalidate"

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
}


def _serialize_detail(detail: str | dict | None) -> str | None:
    if detail is None:
        return None
    if isinstance(detail, (str, int, float)):
        return str(detail)
    return str(detail)


def error_response(
    status_code: int,
    error: str,
    code: str,
    detail: str | dict | None,
    request_id: str | None,
    retry_after: int | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=error,
        code=code,
        detail=_serialize_detail(detail),
        request_id=request_id,
        retry_after=retry_after,
    )
    response_headers = {"Cache-Control": NO_STORE}
    if retry_after is not None:
        response_headers["Retry-After"] = str(retry_after)
    if request_id:
        response_headers[REQUEST_ID_HEADER] = request_id
    response_headers.update(headers or {})
    return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"), headers=response_headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    code = STATUS_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    return error_response(
        exc.status_code,
        error=str(exc.detail) if exc.detail else exc.__class__.__name__,
        code=code,
        detail=exc.detail,
        request_id=request_id,
        headers=exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return error_response(500, error="Internal Server Error", code="UNKNOWN_ERROR", detail=exc.__class__.__name__, request_id=request_id)
