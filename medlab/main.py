from contextlib import asynccontextmanager, contextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from medlab.api.errors import register_error_handlers
from medlab.api.routes import router as api_router
from medlab.auth.service import auth_account_sync_service
from medlab.core.config import get_settings
from medlab.core.database import SessionLocal, get_db
from medlab.core.events import event_bus
from medlab.logging import configure_logging
from medlab.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from medlab.otel import get_fastapi_server_request_hook, setup_otel
from medlab.platform.consumers import subscribe_handlers
from medlab.reports.service import report_service


configure_logging()
logger = logging.getLogger("medlab.lifecycle")
_subscriptions_registered = False


@contextmanager
def _consumer_session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def register_consumers() -> None:
    global _subscriptions_registered
    if _subscriptions_registered:
        return
    for handler_set in [auth_account_sync_service.handler_set(), *report_service.handler_sets()]:
        subscribe_handlers(event_bus, handler_set, _consumer_session_scope)
    _subscriptions_registered = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.notifier_backend.lower() == "inprocess":
        register_consumers()
    logger.info("system.started", extra={"operation": f"notifier={settings.notifier_backend}"})
    yield


app = FastAPI(title="MedLab API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)
register_error_handlers(app)

settings = get_settings()
if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
