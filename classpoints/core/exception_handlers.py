import logging
import traceback
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from classpoints.core.exceptions import AppError, InternalServerError

logger = logging.getLogger(__name__)

_FIELD_CODES = {
    "studentId": "INVALID_STUDENT_ID",
    "student_id": "INVALID_STUDENT_ID",
    "points": "INVALID_POINTS",
    "reason": "INVALID_REASON",
    "limit": "INVALID_LIMIT",
    "type": "INVALID_RANKING_TYPE",
    "startDate": "INVALID_DATE_FORMAT",
    "endDate": "INVALID_DATE_FORMAT",
    "price": "INVALID_PRODUCT_PRICE",
    "stock": "INVALID_PRODUCT_STOCK",
    "quantity": "INVALID_QUANTITY",
    "isActive": "INVALID_STATUS",
    "status": "INVALID_STATUS",
    "mode": "INVALID_MODE",
    "autoRefreshInterval": "INVALID_REFRESH_INTERVAL",
    "maxPointsPerOperation": "INVALID_MAX_POINTS",
}

# list fields whose length cap has its own code
_LIST_CODES = {
    "operations": ("INVALID_OPERATIONS", "TOO_MANY_OPERATIONS"),
    "productIds": ("INVALID_PRODUCT_IDS", "TOO_MANY_PRODUCTS"),
    "students": ("INVALID_STUDENTS", "TOO_MANY_STUDENTS"),
}


def _request_context(request: Request) -> dict[str, Any]:
    client = request.client.host if request.client else "-"
    return {
        "method": request.method,
        "url": str(request.url),
        "client": client,
        "request_id": request_id_of(request),
    }


def request_id_of(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id
    return request_id


def envelope(message: str, code: str, data: Any = None) -> dict[str, Any]:
    content: dict[str, Any] = {"success": False, "message": message, "code": code}
    if data:
        content["data"] = data
    return content


def error_response(exc: AppError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(exc.message, exc.code, exc.details),
        headers=headers,
    )


def validation_code(errors: list[dict[str, Any]]) -> str:
    for error in errors:
        for part in reversed(error.get("loc", ())):
            if not isinstance(part, str):
                continue
            if part in _LIST_CODES:
                invalid, too_many = _LIST_CODES[part]
                return too_many if error.get("type") == "too_long" else invalid
            if part in _FIELD_CODES:
                return _FIELD_CODES[part]
    return "VALIDATION_ERROR"


async def handle_app_error(request: Request, exc: AppError):
    ctx = _request_context(request)
    if exc.status_code >= 500:
        logger.error(
            "[AppError] %s %s from %s -> %s %s: %s",
            ctx["method"], ctx["url"], ctx["client"], exc.status_code, exc.code, exc.message,
        )
    else:
        logger.warning(
            "[AppError] %s %s from %s -> %s %s: %s",
            ctx["method"], ctx["url"], ctx["client"], exc.status_code, exc.code, exc.message,
        )
    return error_response(exc)


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    ctx = _request_context(request)
    logger.warning(
        "[HTTPException] %s %s from %s -> %s: %s",
        ctx["method"], ctx["url"], ctx["client"], exc.status_code, exc.detail,
    )
    code = "RESOURCE_NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    ctx = _request_context(request)
    errors = exc.errors()
    logger.warning(
        "[ValidationError] %s %s from %s -> 400: %s",
        ctx["method"], ctx["url"], ctx["client"], errors,
    )
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg", ""),
        }
        for error in errors
    ]
    first = details[0]["message"] if details else "Invalid request"
    return JSONResponse(
        status_code=400,
        content=envelope(first, validation_code(errors), {"errors": details}),
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    ctx = _request_context(request)
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        "[Unhandled Error] %s %s from %s (correlation id %s)\n"
        "Exception Type: %s\nException Message: %s\n\nFull Stack Trace:\n%s",
        ctx["method"], ctx["url"], ctx["client"], ctx["request_id"],
        type(exc).__name__, exc, tb_str,
    )
    internal = InternalServerError(details={"correlationId": ctx["request_id"]})
    return error_response(internal, headers={"X-Request-ID": ctx["request_id"]})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
