from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Span

from medlab.context import CORRELATION_HEADER, get_correlation_id


_provider: TracerProvider | None = None
_console_attached = False


def _provider_for(service_name: str) -> TracerProvider:
    global _provider

    if _provider is None:
        _provider = TracerProvider(
            resource=Resource.create(
                {
                    "service.name": service_name,
                    "service.version": os.getenv("APP_VERSION", "0.1.0"),
                }
            )
        )
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    global _console_attached

    if not enable:
        return None

    provider = _provider_for(service_name)
    if not _console_attached and os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        _console_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "medlab") -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _provider_for(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def notification_span(operation: str, exchange: str, routing_key: str) -> Iterator[Span]:
    """Span around publishing or consuming one change notification."""
    tracer = trace.get_tracer("medlab.notify")
    attributes: dict[str, Any] = {
        "messaging.operation": operation,
        "messaging.destination": exchange,
        "messaging.routing_key": routing_key,
    }
    correlation_id = get_correlation_id()
    if correlation_id:
        attributes["correlation_id"] = correlation_id
    with tracer.start_as_current_span(f"notification.{operation}", attributes=attributes) as span:
        yield span


def get_fastapi_server_request_hook():
    header = CORRELATION_HEADER.encode("latin-1")

    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        correlation_raw = dict(scope.get("headers", [])).get(header)
        if correlation_raw:
            span.set_attribute("correlation_id", correlation_raw.decode("latin-1"))

    return server_request_hook
