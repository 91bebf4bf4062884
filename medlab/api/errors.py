from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from medlab.context import get_correlation_id
from medlab.platform.errors import DomainError, ErrorKind


logger = logging.getLogger("medlab.api")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOTIFICATION_DELIVERY: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(*, status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=get_correlation_id(),
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("http.domain_error", extra={"path": request.url.path, "error_kind": exc.kind.value, "error": exc.detail})
    return error_response(status_code=status_code, code=exc.kind.value, message=exc.detail)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
