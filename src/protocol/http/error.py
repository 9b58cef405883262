from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, cast

from fastapi import Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from ...engine.fen import FENError
from ...match.fen_pattern import PatternError
from ...match.material import MaterialSpecError


logger = logging.getLogger(__name__)

# Malformed chess input raised by the engine itself, reported as a client error.
DOMAIN_ERRORS = {
    FENError: "invalid_fen",
    PatternError: "invalid_pattern",
    MaterialSpecError: "invalid_ending",
}

_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "unprocessable_entity",
}


def error_envelope(
    *,
    code: str,
    message: str,
    err_type: str,
    request_id: str,
    field_errors: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message, "type": err_type, "request_id": request_id}
    if field_errors:
        body["field_errors"] = field_errors
    return {"error": body}


def _respond(
    request: Request,
    status_code: int,
    message: str,
    field_errors: Optional[List[Dict[str, str]]] = None,
) -> JSONResponse:
    payload = error_envelope(
        code=_status_to_code(status_code),
        message=message,
        err_type="client_error" if status_code < 500 else "server_error",
        request_id=getattr(request.state, "request_id", ""),
        field_errors=field_errors,
    )
    return JSONResponse(status_code=status_code, content=payload)


def _from_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _respond(request, exc.status_code, detail)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, StarletteHTTPException):
        return _from_http_exception(request, exc)
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render FEN, pattern and ending syntax errors as 400s naming what was wrong."""
    kind = next((name for cls, name in DOMAIN_ERRORS.items() if isinstance(exc, cls)), None)
    if kind is None:
        return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
    logger.info(
        "rejected %s: %s", kind, exc, extra={"request_id": getattr(request.state, "request_id", "")}
    )
    return _respond(request, status.HTTP_400_BAD_REQUEST, f"{kind.replace('_', ' ')}: {exc}")


async def exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, StarletteHTTPException):
        return _from_http_exception(request, exc)
    logger.exception(
        "Unhandled exception", extra={"request_id": getattr(request.state, "request_id", "")}
    )
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


async def request_validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    # One entry per offending field, keyed by its dotted location
    field_errors = [
        {
            "field": ".".join(str(p) for p in e.get("loc", []) if p is not None),
            "code": e.get("type", "value_error"),
            "message": e.get("msg", "invalid value"),
        }
        for e in cast(RequestValidationError, exc).errors()
    ]
    return _respond(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        field_errors=field_errors or None,
    )


def _status_to_code(status_code: int) -> str:
    if 500 <= status_code < 600:
        return "internal_error"
    return _STATUS_CODES.get(status_code, "error")
