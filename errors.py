"""
Error taxonomy for the storefront API.

Services raise these exceptions; the handlers registered on the app turn every
error path into a JSON body of the form {"message": "..."}.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config

logger = logging.getLogger(__name__)


class ShopError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "درخواست نامعتبر است"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ShopError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "داده‌های ورودی نامعتبر است"


class InsufficientStockError(ValidationError):
    default_message = "موجودی کافی وجود ندارد"


class InvalidStateError(ShopError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "این سفارش قابل لغو نیست"


class UnauthorizedError(ShopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "دسترسی غیرمجاز، توکن موجود نیست"


class ForbiddenError(ShopError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "دسترسی غیرمجاز"


class NotFoundError(ShopError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "موردی یافت نشد"


class ConflictError(ShopError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "این مورد قبلاً ثبت شده است"


async def shop_error_handler(request: Request, exc: ShopError):
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "خطای درخواست"
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "مسیر یافت نشد"
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": ValidationError.default_message, "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"message": "خطای سرور"}
    if config.IS_DEVELOPMENT:
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
