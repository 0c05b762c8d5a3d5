"""
Problem-details (RFC 7807) rendering for the scheduling API.

Every error leaves the API as ``application/problem+json`` with the keys
type, title, status, detail and instance, plus ``code`` and ``errors`` when
the failure carries them. Booking conflicts land under ``errors.conflicts``.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException, RepositoryException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


def _status_title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_response(
    request: Request,
    status_code: int,
    *,
    detail: str = "",
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": _status_title(status_code),
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(
        body,
        status_code=status_code,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=dict(headers) if headers else None,
    )


def _from_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routes raise DomainException(...).to_http_exception(), whose detail is
    # {"message", "code", "details"}; framework errors carry a plain string.
    payload = exc.detail
    headers = getattr(exc, "headers", None)
    if isinstance(payload, dict):
        return problem_response(
            request,
            exc.status_code,
            detail=str(payload.get("message") or ""),
            code=payload.get("code"),
            errors=payload.get("details"),
            headers=headers,
        )
    return problem_response(
        request,
        exc.status_code,
        detail="" if payload is None else str(payload),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def handle_domain_error(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error("%s failed on %s: %s", exc.code, request.url.path, exc.message)
        else:
            logger.info("%s rejected on %s: %s", exc.code, request.url.path, exc.message)
        return _from_http_exception(request, http_exc)

    @app.exception_handler(HTTPException)
    async def handle_http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return _from_http_exception(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_routing_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _from_http_exception(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return problem_response(
            request,
            422,
            detail="Request validation failed",
            code="validation_error",
            errors=exc.errors(),
        )

    @app.exception_handler(RepositoryException)
    async def handle_storage_error(request: Request, exc: RepositoryException) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return problem_response(
            request, 500, detail="Internal Server Error", code="repository_error"
        )
