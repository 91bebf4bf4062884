"""Downstream side of change notifications.

A consuming service exposes a mapping of routing key to payload handler. The
same mapping is wired either onto the in-process event bus
(:func:`subscribe_handlers`) or onto broker queues (:class:`NotificationConsumer`).
Handler failures are logged and do not propagate back to the publisher.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

from kombu import Exchange, Queue
from kombu.mixins import ConsumerMixin
from sqlalchemy.orm import Session

from medlab.context import correlation_scope
from medlab.core.events import InProcessEventBus, InternalEvent
from medlab.metrics import observe_notification_consumed
from medlab.otel import notification_span


logger = logging.getLogger("medlab.consumers")

SessionScope = Callable[[], AbstractContextManager[Session]]
PayloadHandler = Callable[[Session, dict[str, Any]], None]


@dataclass(frozen=True)
class HandlerSet:
    consumer: str
    exchange: str
    handlers: Mapping[str, PayloadHandler]


def dispatch(
    handler_set: HandlerSet,
    routing_key: str,
    payload: dict[str, Any],
    session_scope: SessionScope,
    correlation_id: str | None = None,
) -> bool:
    with correlation_scope(correlation_id), notification_span("consume", handler_set.exchange, routing_key):
        return _run_handler(handler_set, routing_key, payload, session_scope)


def _run_handler(handler_set: HandlerSet, routing_key: str, payload: dict[str, Any], session_scope: SessionScope) -> bool:
    handler = handler_set.handlers.get(routing_key)
    log_fields = {"exchange": handler_set.exchange, "routing_key": routing_key, "entity": handler_set.consumer}
    if handler is None:
        logger.warning("notification.unhandled", extra=log_fields)
        return False

    try:
        with session_scope() as session:
            handler(session, payload)
    except Exception as exc:
        logger.exception("notification.consume_failed", extra={**log_fields, "error": str(exc)})
        return False

    observe_notification_consumed(handler_set.consumer, routing_key)
    return True


def subscribe_handlers(bus: InProcessEventBus, handler_set: HandlerSet, session_scope: SessionScope) -> None:
    for routing_key in handler_set.handlers:
        bus.subscribe(f"{handler_set.exchange}.{routing_key}", _bind(handler_set, routing_key, session_scope))


def _bind(handler_set: HandlerSet, routing_key: str, session_scope: SessionScope) -> Callable[[InternalEvent], None]:
    def on_event(event: InternalEvent) -> None:
        dispatch(handler_set, routing_key, event.payload, session_scope)

    return on_event


class NotificationConsumer(ConsumerMixin):
    """Consumes every handler set from one durable queue per routing key."""

    def __init__(self, connection: Any, handler_sets: list[HandlerSet], session_scope: SessionScope) -> None:
        self.connection = connection
        self.handler_sets = handler_sets
        self.session_scope = session_scope

    def _queues(self, handler_set: HandlerSet) -> list[Queue]:
        exchange = Exchange(handler_set.exchange, type="direct", durable=True)
        return [
            Queue(
                f"{handler_set.consumer}.{routing_key}",
                exchange=exchange,
                routing_key=routing_key,
                durable=True,
            )
            for routing_key in handler_set.handlers
        ]

    def get_consumers(self, Consumer: Any, channel: Any) -> list[Any]:  # noqa: N803
        return [
            Consumer(
                queues=self._queues(handler_set),
                callbacks=[self._callback(handler_set)],
                accept=["json"],
            )
            for handler_set in self.handler_sets
        ]

    def _callback(self, handler_set: HandlerSet) -> Callable[[Any, Any], None]:
        def on_message(body: Any, message: Any) -> None:
            routing_key = message.delivery_info.get("routing_key", "")
            payload = body if isinstance(body, dict) else {}
            correlation_id = (message.headers or {}).get("correlation_id")
            if dispatch(handler_set, routing_key, payload, self.session_scope, correlation_id):
                message.ack()
            else:
                message.reject()

        return on_message
