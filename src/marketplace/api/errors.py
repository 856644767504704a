"""Exception-to-HTTP-response mappings for the marketplace API.

Same shape as Protean's FastAPI integration (``error`` plus
``correlation_id`` when a domain context is active), with a human readable
``message`` on every response and the marketplace's own error types mapped.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.domain.context import has_domain_context
from protean.exceptions import (
    InvalidDataError,
    InvalidOperationError,
    InvalidStateError,
    ObjectNotFoundError,
    ValidationError,
)
from protean.utils.globals import g

from marketplace.errors import AccessDenied, GatewayError

logger = structlog.get_logger(__name__)


def _get_correlation_id() -> str | None:
    if not has_domain_context():
        return None
    return getattr(g, "used_correlation_id", None) or getattr(g, "request_correlation_id", None)


def _flatten(messages) -> str:
    if isinstance(messages, dict):
        parts = []
        for key, value in messages.items():
            text = "; ".join(str(item) for item in value) if isinstance(value, (list, tuple)) else str(value)
            parts.append(text if key in ("_entity", "__all__") else f"{key}: {text}")
        return "; ".join(parts)
    if isinstance(messages, (list, tuple)):
        return "; ".join(str(item) for item in messages)
    return str(messages)


def _error_body(message: str, error: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"message": message}
    if error is not None:
        body["error"] = error
    correlation_id = _get_correlation_id()
    if correlation_id is not None:
        body["correlation_id"] = correlation_id
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain exceptions to HTTP responses."""

    @app.exception_handler(ValidationError)
    @app.exception_handler(InvalidDataError)
    async def validation_error_handler(request: Request, exc: ValidationError | InvalidDataError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(_flatten(exc.messages), exc.messages))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg")} for error in exc.errors()
        ]
        message = "; ".join(f"{'.'.join(error['loc'][1:]) or 'body'}: {error['msg']}" for error in errors)
        return JSONResponse(status_code=400, content=_error_body(message or "Invalid request", errors))

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(str(exc) or "Not found"))

    @app.exception_handler(AccessDenied)
    async def access_denied_handler(request: Request, exc: AccessDenied) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_error_body(str(exc)))

    @app.exception_handler(InvalidOperationError)
    async def invalid_operation_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_error_body(str(exc)))

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content=_error_body("Payment provider error", {"detail": exc.message, "code": exc.provider_code}),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("api.unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))
