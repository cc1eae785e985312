"""
Global Exception Handlers

Every error leaves the API in the BaseResponse envelope; the HTTP status
mirrors the failure class.
"""

import logging
import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError, HTTPException
from starlette.exceptions import HTTPException as StarletteHTTPException

from repo_preview.core.preview.exceptions import PreviewError, PreviewCreationError
from repo_preview.utils.model.response_model import BaseResponse
from repo_preview.utils.model.response_code import ResponseCode
from .base_exceptions import BusinessException

logger = logging.getLogger(__name__)


def _json(response: BaseResponse, http_status: int) -> JSONResponse:
    return JSONResponse(status_code=http_status, content=response.model_dump())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors (unknown projectType, bad port, bad identifier)

    Returns:
        422 with one entry per failing field
    """
    logger.warning(f"Validation error on {request.url}: {exc.errors()}")

    fields = []
    for error in exc.errors():
        entry = {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "msg": error["msg"],
            "type": error["type"],
        }
        if "input" in error:
            entry["input"] = str(error["input"])
        fields.append(entry)

    response = BaseResponse.validation_error(
        data={"details": fields},
        message="; ".join(f"{f['field']}: {f['msg']}" if f["field"] else f["msg"] for f in fields),
    )
    return _json(response, status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised by routing or handlers"""
    logger.warning(f"HTTP {exc.status_code} on {request.url}: {exc.detail}")

    if exc.status_code == status.HTTP_404_NOT_FOUND:
        response = BaseResponse.not_found(message=str(exc.detail))
    elif exc.status_code == status.HTTP_400_BAD_REQUEST:
        response = BaseResponse.bad_request(message=str(exc.detail))
    else:
        response = BaseResponse.error(message=str(exc.detail), code=exc.status_code)
    return _json(response, exc.status_code)


async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle Starlette HTTP exceptions (e.g. unknown routes)"""
    return await http_exception_handler(request, HTTPException(status_code=exc.status_code, detail=exc.detail))


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """Handle business rule violations, such as an unparseable repository URL"""
    logger.warning(f"Business error on {request.url}: {exc.message}")

    if exc.code == status.HTTP_404_NOT_FOUND:
        return _json(BaseResponse.not_found(message=exc.message, data=exc.data), status.HTTP_404_NOT_FOUND)
    return _json(BaseResponse.business_error(message=exc.message, data=exc.data), status.HTTP_400_BAD_REQUEST)


async def preview_exception_handler(request: Request, exc: PreviewError) -> JSONResponse:
    """
    Handle preview pipeline exceptions that escaped the service layer

    Creation failures carry the failing phase; anything else is a runtime error.
    """
    logger.error(f"Preview error on {request.url}: {exc}")

    if isinstance(exc, PreviewCreationError):
        code = ResponseCode.for_phase(exc.phase)
    else:
        code = ResponseCode.PREVIEW_RUNTIME_ERROR

    response = BaseResponse.error(
        message=str(exc),
        data={"operation": exc.operation, "details": exc.details},
        code=code,
    )
    return _json(response, status.HTTP_502_BAD_GATEWAY)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.url}: {exc}", exc_info=True)

    # Exception details only outside production
    if os.getenv("ENVIRONMENT", "development") == "development":
        message = f"Internal server error: {exc}"
        data = {"error_type": type(exc).__name__, "error_message": str(exc)}
    else:
        message = "Internal server error, please try again later"
        data = None

    response = BaseResponse.error(message=message, data=data, code=ResponseCode.INTERNAL_SERVER_ERROR)
    return _json(response, status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app):
    """
    Register all exception handlers

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, starlette_http_exception_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(PreviewError, preview_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
