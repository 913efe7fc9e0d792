# backend/thrive/errors.py
"""
Problem-JSON error responses.

Every error leaves the API as
``{type, title, status, detail, instance, code?, errors?}`` so the booking
widget can show ``detail`` and branch on ``code``.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_response(
    request: Request,
    status_code: int,
    detail: Any = None,
    *,
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": _title(status_code),
        "status": status_code,
        "detail": detail if detail is not None else "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status_code, headers=dict(headers or {}))


def _from_http_detail(
    request: Request,
    status_code: int,
    detail: Any,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    # Structured details carry {"message", "code", "details"}
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail")
        return problem_response(
            request,
            status_code,
            message if isinstance(message, str) else None,
            code=detail.get("code") if isinstance(detail.get("code"), str) else None,
            errors=detail.get("details") or detail.get("errors"),
            headers=headers,
        )
    return problem_response(
        request, status_code, None if detail is None else str(detail), headers=headers
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return _from_http_detail(request, http_exc.status_code, http_exc.detail)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _from_http_detail(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _from_http_detail(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return problem_response(request, 422, errors, code="validation_error", errors=errors)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return problem_response(request, 422, errors, code="validation_error", errors=errors)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return problem_response(
            request, 500, "Internal Server Error", code="internal_server_error"
        )
