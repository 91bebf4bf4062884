from __future__ import annotations

import logging
import time

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from medlab.context import CORRELATION_HEADER, correlation_scope
from medlab.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("medlab.request")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the caller's correlation id (or a fresh one) to the request context."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        with correlation_scope(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            request.state.correlation_id = correlation_id
            span = trace.get_current_span()
            if span.is_recording():
                span.set_attribute("correlation_id", correlation_id)
            response = await call_next(request)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._record(request, 500, started, level=logging.ERROR, exc_info=True)
            raise

        self._record(request, response.status_code, started)
        return response

    @staticmethod
    def _record(
        request: Request,
        status_code: int,
        started: float,
        *,
        level: int = logging.INFO,
        exc_info: bool = False,
    ) -> None:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=status_code, duration=duration_ms / 1000)
        logger.log(
            level,
            "http.error" if exc_info else "http.request",
            exc_info=exc_info,
            extra={
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
            },
        )
