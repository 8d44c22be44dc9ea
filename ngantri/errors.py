"""
Error types and consistent JSON error/success envelopes
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes"""
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    MERCHANT_NOT_FOUND = "MERCHANT_NOT_FOUND"
    MENU_NOT_FOUND = "MENU_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    MERCHANT_INACTIVE = "MERCHANT_INACTIVE"
    MENU_UNAVAILABLE = "MENU_UNAVAILABLE"

    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"


class AppError(Exception):
    """Domain error carrying an error code and HTTP status"""

    def __init__(self, code: ErrorCode, message: str, status_code: int, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def __repr__(self):
        return f"AppError({self.code.value}, {self.message!r})"


def not_found(resource: str, id: Optional[str] = None) -> AppError:
    suffix = f" with ID {id}" if id else ""
    return AppError(ErrorCode.NOT_FOUND, f"{resource}{suffix} not found", 404)


def unauthorized(message: str = "Authentication required") -> AppError:
    return AppError(ErrorCode.UNAUTHORIZED, message, 401)


def forbidden(message: str = "Access denied") -> AppError:
    return AppError(ErrorCode.FORBIDDEN, message, 403)


def bad_request(message: str, details: Any = None) -> AppError:
    return AppError(ErrorCode.BAD_REQUEST, message, 400, details)


def conflict(message: str, details: Any = None) -> AppError:
    return AppError(ErrorCode.CONFLICT, message, 409, details)


def validation(message: str, details: Any = None) -> AppError:
    return AppError(ErrorCode.VALIDATION_ERROR, message, 400, details)


def internal(message: str = "Internal server error", details: Any = None) -> AppError:
    return AppError(ErrorCode.INTERNAL_SERVER_ERROR, message, 500, details)


def merchant_not_found(id: Optional[str] = None) -> AppError:
    suffix = f" with ID {id}" if id else ""
    return AppError(ErrorCode.MERCHANT_NOT_FOUND, f"Merchant{suffix} not found", 404)


def menu_not_found(id: Optional[str] = None) -> AppError:
    suffix = f" with ID {id}" if id else ""
    return AppError(ErrorCode.MENU_NOT_FOUND, f"Menu item{suffix} not found", 404)


def order_not_found(id: Optional[str] = None) -> AppError:
    suffix = f" with ID {id}" if id else ""
    return AppError(ErrorCode.ORDER_NOT_FOUND, f"Order{suffix} not found", 404)


def merchant_inactive(merchant_name: str) -> AppError:
    return AppError(
        ErrorCode.MERCHANT_INACTIVE,
        f"Merchant {merchant_name} is currently inactive",
        400,
        {"merchantName": merchant_name},
    )


def menu_unavailable(menu_name: str) -> AppError:
    return AppError(
        ErrorCode.MENU_UNAVAILABLE,
        f"Menu item {menu_name} is currently unavailable",
        400,
        {"menuName": menu_name},
    )


def invalid_credentials() -> AppError:
    return AppError(ErrorCode.INVALID_CREDENTIALS, "Invalid phone number or password", 401)


def payment_gateway(message: str) -> AppError:
    return AppError(ErrorCode.PAYMENT_GATEWAY_ERROR, message, 502)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Any = None,
    path: Optional[str] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "error": {
            "code": code.value,
            "message": message,
            "details": details,
            "timestamp": _timestamp(),
            "path": path,
        },
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def success_response(
    data: Any,
    pagination: Optional[dict] = None,
    message: Optional[str] = None,
    status_code: int = 200,
) -> JSONResponse:
    body = {"success": True, "data": data, "timestamp": _timestamp()}
    if pagination is not None:
        body["pagination"] = pagination
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        # Internal details never leave the process
        return error_response(exc.code, exc.message, exc.status_code, path=request.url.path)
    return error_response(exc.code, exc.message, exc.status_code, exc.details, request.url.path)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "code": error.get("type"),
        }
        for error in exc.errors()
    ]
    return error_response(
        ErrorCode.VALIDATION_ERROR, "Input validation failed", 400, details, request.url.path
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        ErrorCode.INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        500,
        path=request.url.path,
    )


def install_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
