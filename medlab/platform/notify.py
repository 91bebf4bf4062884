"""Cross-service change notifications.

A service builds one :class:`ChangeNotification` per successful mutation and
hands it to :func:`send_notification`, which publishes it through the
configured :class:`Notifier`. Delivery is attempted once; any failure surfaces
as :class:`NotificationDeliveryError` and the caller decides what to roll back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from celery import Celery
from kombu import Exchange
from sqlalchemy.orm import Session

from medlab.context import get_correlation_id
from medlab.core.events import InProcessEventBus, event_bus
from medlab.metrics import observe_notification
from medlab.otel import notification_span
from medlab.platform.errors import NotificationDeliveryError


logger = logging.getLogger("medlab.notify")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChangeNotification:
    exchange: str
    routing_key: str
    payload: dict[str, Any]
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_name(self) -> str:
        return f"{self.exchange}.{self.routing_key}"


class Notifier(Protocol):
    def publish(self, notification: ChangeNotification) -> None: ...


class EventBusNotifier:
    """Delivers notifications to subscribers in the same process."""

    def __init__(self, bus: InProcessEventBus | None = None) -> None:
        self._bus = bus or event_bus

    def publish(self, notification: ChangeNotification) -> None:
        self._bus.publish(notification.event_name, dict(notification.payload))


class BrokerNotifier:
    """Publishes notifications to a direct exchange through Celery's producer pool."""

    def __init__(self, app: Celery) -> None:
        self._app = app
        self._exchanges: dict[str, Exchange] = {}

    def _exchange(self, name: str) -> Exchange:
        exchange = self._exchanges.get(name)
        if exchange is None:
            exchange = Exchange(name, type="direct", durable=True)
            self._exchanges[name] = exchange
        return exchange

    def publish(self, notification: ChangeNotification) -> None:
        exchange = self._exchange(notification.exchange)
        with self._app.producer_or_acquire() as producer:
            producer.publish(
                notification.payload,
                exchange=exchange,
                routing_key=notification.routing_key,
                serializer="json",
                declare=[exchange],
                retry=False,
                headers={
                    "notification_id": notification.notification_id,
                    "occurred_at": notification.occurred_at.isoformat(),
                    "correlation_id": get_correlation_id(),
                },
            )


def send_notification(notifier: Notifier, notification: ChangeNotification) -> None:
    log_fields = {
        "exchange": notification.exchange,
        "routing_key": notification.routing_key,
        "notification_id": notification.notification_id,
    }
    with notification_span("publish", notification.exchange, notification.routing_key) as span:
        span.set_attribute("messaging.message_id", notification.notification_id)
        try:
            notifier.publish(notification)
        except Exception as exc:
            observe_notification(notification.exchange, notification.routing_key, "failed")
            logger.error("notification.failed", exc_info=True, extra={**log_fields, "error": str(exc)})
            raise NotificationDeliveryError(
                f"Failed to send {notification.routing_key} notification",
                cause=exc,
            ) from exc

    observe_notification(notification.exchange, notification.routing_key, "sent")
    logger.info("notification.sent", extra=log_fields)


def build_notifier(backend: str, app: Celery | None = None) -> Notifier:
    if backend.lower() == "broker":
        if app is None:
            from medlab.core.celery_app import celery_app

            app = celery_app
        return BrokerNotifier(app)
    return EventBusNotifier()


def notify_before_commit(session: Session, notifier: Notifier, notification: ChangeNotification) -> None:
    """Publish while the mutation is still uncommitted; roll it back if publishing fails."""
    try:
        send_notification(notifier, notification)
    except NotificationDeliveryError:
        session.rollback()
        raise
