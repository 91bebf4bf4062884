"""Broker-side consumer process.

Runs the auth account sync and report relinking handlers against durable
queues bound to the user and patient exchanges.
"""

from contextlib import contextmanager
import logging

from medlab.auth.service import auth_account_sync_service
from medlab.core.celery_app import celery_app
from medlab.core.database import SessionLocal
from medlab.logging import configure_logging
from medlab.platform.consumers import NotificationConsumer
from medlab.reports.service import report_service


logger = logging.getLogger("medlab.worker")


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def build_consumer(connection) -> NotificationConsumer:  # type: ignore[no-untyped-def]
    handler_sets = [auth_account_sync_service.handler_set(), *report_service.handler_sets()]
    return NotificationConsumer(connection, handler_sets, session_scope)


def main() -> None:
    configure_logging()
    with celery_app.connection_for_read() as connection:
        logger.info("worker.started", extra={"operation": "consume"})
        build_consumer(connection).run()


if __name__ == "__main__":
    main()
