"""Error Handlers: map exceptions raised by preview routes onto the JSON error envelope.

Invariants:
    - Every error body has the shape {"error": {code, message, category, severity, ...}}
    - PreviewPipelineError keeps its own status (400/403/404/429/5xx) and code
    - Request validation failures are 400 VALIDATION_ERROR with one detail per field
    - Unhandled exceptions are 500 INTERNAL_ERROR; the exception text is logged, not returned

Design Decisions:
    - Domain, validation, catch-all: three handlers, most specific registered first
    - 4xx domain errors log at WARNING (caller mistakes, e.g. quota), 5xx at ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from jewelpreview.core.errors import ErrorCategory, ErrorSeverity, PreviewPipelineError

logger = logging.getLogger(__name__)


def _envelope(
    code: str, message: str, category: ErrorCategory, severity: ErrorSeverity,
    **extra,
) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "category": category.value,
            "severity": severity.value,
            **extra,
        },
    }


def _field_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


async def _on_pipeline_error(request: Request, exc: PreviewPipelineError):
    level = logging.WARNING if exc.http_status < 500 else logging.ERROR
    logger.log(
        level, f"{request.method} {request.url.path} → {exc.code}: {exc.message}",
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def _on_validation_error(request: Request, exc: RequestValidationError):
    details = _field_errors(exc)
    logger.warning(
        f"{request.method} {request.url.path} rejected: "
        f"{', '.join(d['field'] for d in details)}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope(
            "VALIDATION_ERROR", "Invalid request data", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, details=details,
        ),
    )


async def _on_unhandled(request: Request, exc: Exception):
    logger.error(
        f"{request.method} {request.url.path} failed: {exc}", exc_info=True,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PreviewPipelineError, _on_pipeline_error)
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(Exception, _on_unhandled)
