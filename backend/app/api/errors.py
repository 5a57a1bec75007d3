"""
Rendu JSON des erreurs : {"error", "code", "details"}.

Les détails d'une erreur interne ne sortent qu'hors production.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import get_settings
from backend.app.core.errors import DomainError, InternalError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, code: str, details=None) -> JSONResponse:
    body = {"error": message, "code": code}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=body)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    details = exc.details
    if isinstance(exc, InternalError) and get_settings().is_production:
        details = None
    return _error_response(exc.status_code, exc.message, exc.code, details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _error_response(400, "Invalid input data", "VALIDATION_ERROR", details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = None if get_settings().is_production else repr(exc)
    return _error_response(500, "Internal server error", "INTERNAL_SERVER_ERROR", details)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
