"""
Centralized error handling middleware for the renderer API
"""

import logging
import traceback
import uuid
import time
from typing import Union
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from errors.exceptions import VisualizationError

logger = logging.getLogger(__name__)

# Error codes to HTTP status
STATUS_CODE_MAP = {
    "UNKNOWN_BLOCK": 404,
    "UNKNOWN_CHAIN": 404,
    "UNKNOWN_PARENT": 409,
    "DUPLICATE_BLOCK": 409,
    "DUPLICATE_NODE": 409,
    "UNRECOGNIZED_EVENT": 400,
    "MALFORMED_FIELD": 400,
    "DECODE_ERROR": 400,
    "VISUALIZATION_ERROR": 500,
}

async def add_correlation_id_middleware(request: Request, call_next):
    """Add correlation ID to all requests for tracing"""
    correlation_id = str(uuid.uuid4())
    request.state.correlation_id = correlation_id

    try:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
    except Exception as e:
        logger.error(f"Unhandled exception in request {correlation_id}: {str(e)}", exc_info=True)
        raise

def create_error_response(
    error_code: str,
    message: str,
    status_code: int = 400,
    correlation_id: str = None,
    details: dict = None
) -> JSONResponse:
    """Create standardized error response"""

    error_response = {
        "error": {
            "code": error_code,
            "message": message,
            "correlation_id": correlation_id,
            "timestamp": int(time.time() * 1000)
        }
    }

    if details:
        error_response["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=error_response
    )

async def visualization_error_handler(request: Request, exc: VisualizationError) -> JSONResponse:
    """Handle visualizer errors raised by store lookups"""
    correlation_id = getattr(request.state, 'correlation_id', None)
    status_code = STATUS_CODE_MAP.get(exc.code, 500)

    log = logger.info if status_code < 500 else logger.error
    log(
        f"Visualization error: {exc.message}",
        extra={
            "error_code": exc.code,
            "correlation_id": correlation_id,
            "endpoint": request.url.path
        }
    )

    return create_error_response(
        error_code=exc.code,
        message=exc.message,
        status_code=status_code,
        correlation_id=correlation_id
    )

async def validation_error_handler(request: Request, exc: Union[RequestValidationError, ValidationError]) -> JSONResponse:
    """Handle Pydantic validation errors"""
    correlation_id = getattr(request.state, 'correlation_id', None)

    if isinstance(exc, RequestValidationError):
        errors = exc.errors()
        message = "Request validation failed"
    else:
        errors = exc.errors() if hasattr(exc, 'errors') else [{"msg": str(exc)}]
        message = "Data validation failed"

    logger.warning(
        f"Validation error: {message}",
        extra={
            "errors": errors,
            "correlation_id": correlation_id,
            "endpoint": request.url.path
        }
    )

    return create_error_response(
        error_code="VALIDATION_ERROR",
        message=message,
        status_code=422,
        correlation_id=correlation_id,
        details={"validation_errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]}
    )

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions"""
    correlation_id = getattr(request.state, 'correlation_id', None)

    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "correlation_id": correlation_id,
            "endpoint": request.url.path
        }
    )

    return create_error_response(
        error_code="HTTP_ERROR",
        message=exc.detail,
        status_code=exc.status_code,
        correlation_id=correlation_id
    )

async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    correlation_id = getattr(request.state, 'correlation_id', None)

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "correlation_id": correlation_id,
            "endpoint": request.url.path,
            "traceback": traceback.format_exc()
        }
    )

    return create_error_response(
        error_code="INTERNAL_ERROR",
        message="Internal server error",
        status_code=500,
        correlation_id=correlation_id
    )

def setup_error_handlers(app):
    """Setup all error handlers for FastAPI app"""

    app.middleware("http")(add_correlation_id_middleware)

    app.add_exception_handler(VisualizationError, visualization_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
