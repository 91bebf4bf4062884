from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from unittest.mock import MagicMock

import pytest
from celery import Celery

from medlab.context import correlation_scope, get_correlation_id
from medlab.core.events import InProcessEventBus, InternalEvent
from medlab.platform.consumers import HandlerSet, NotificationConsumer, dispatch, subscribe_handlers
from medlab.platform.errors import ErrorKind, NotificationDeliveryError
from medlab.platform.notify import (
    BrokerNotifier,
    ChangeNotification,
    EventBusNotifier,
    build_notifier,
    notify_before_commit,
    send_notification,
)


class FailingNotifier:
    def publish(self, notification: ChangeNotification) -> None:
        raise ConnectionError("broker unreachable")


@contextmanager
def _no_session() -> Iterator[Any]:
    yield None


def _notification(routing_key: str = "user.create") -> ChangeNotification:
    return ChangeNotification(exchange="user-exchange", routing_key=routing_key, payload={"username": "tech.one"})


@pytest.fixture()
def celery_test_app(monkeypatch: pytest.MonkeyPatch) -> tuple[Celery, MagicMock]:
    app = Celery("medlab-test", broker="memory://")
    producer = MagicMock()

    @contextmanager
    def producer_or_acquire(*args: Any, **kwargs: Any) -> Iterator[MagicMock]:
        yield producer

    monkeypatch.setattr(app, "producer_or_acquire", producer_or_acquire)
    return app, producer


def test_event_name_joins_exchange_and_routing_key() -> None:
    assert _notification().event_name == "user-exchange.user.create"


def test_event_bus_notifier_delivers_payload_copy() -> None:
    bus = InProcessEventBus()
    received: list[InternalEvent] = []
    bus.subscribe("user-exchange.user.create", received.append)
    notification = _notification()

    EventBusNotifier(bus).publish(notification)

    assert [event.name for event in received] == ["user-exchange.user.create"]
    assert received[0].payload == {"username": "tech.one"}
    assert received[0].payload is not notification.payload


def test_broker_notifier_publishes_json_to_direct_exchange(celery_test_app: tuple[Celery, MagicMock]) -> None:
    app, producer = celery_test_app
    notification = _notification()

    BrokerNotifier(app).publish(notification)

    producer.publish.assert_called_once()
    args, kwargs = producer.publish.call_args
    assert args == ({"username": "tech.one"},)
    assert kwargs["exchange"].name == "user-exchange"
    assert kwargs["exchange"].type == "direct"
    assert kwargs["routing_key"] == "user.create"
    assert kwargs["serializer"] == "json"
    assert kwargs["retry"] is False
    assert kwargs["headers"]["notification_id"] == notification.notification_id


def test_broker_notifier_reuses_exchange_declaration(celery_test_app: tuple[Celery, MagicMock]) -> None:
    app, producer = celery_test_app
    notifier = BrokerNotifier(app)

    notifier.publish(_notification("user.create"))
    notifier.publish(_notification("user.delete"))

    first, second = producer.publish.call_args_list
    assert first.kwargs["exchange"] is second.kwargs["exchange"]


def test_send_notification_wraps_publish_failure(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="medlab.notify")

    with pytest.raises(NotificationDeliveryError) as exc_info:
        send_notification(FailingNotifier(), _notification())

    assert exc_info.value.kind is ErrorKind.NOTIFICATION_DELIVERY
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert any(
        record.getMessage() == "notification.failed" and getattr(record, "routing_key", None) == "user.create"
        for record in caplog.records
    )


def test_notify_before_commit_rolls_back_on_failure() -> None:
    session = MagicMock()

    with pytest.raises(NotificationDeliveryError):
        notify_before_commit(session, FailingNotifier(), _notification())

    session.rollback.assert_called_once_with()
    session.commit.assert_not_called()


def test_build_notifier_selects_backend() -> None:
    app = Celery("medlab-test", broker="memory://")

    assert isinstance(build_notifier("inprocess"), EventBusNotifier)
    assert isinstance(build_notifier("BROKER", app), BrokerNotifier)


def test_dispatch_unknown_routing_key_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="medlab.consumers")
    handler_set = HandlerSet(consumer="auth", exchange="user-exchange", handlers={})

    assert dispatch(handler_set, "user.unknown", {}, _no_session) is False
    assert [record.getMessage() for record in caplog.records] == ["notification.unhandled"]


def test_dispatch_contains_handler_failure(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="medlab.consumers")

    def explode(session: Any, payload: dict[str, Any]) -> None:
        raise RuntimeError("downstream store offline")

    handler_set = HandlerSet(consumer="auth", exchange="user-exchange", handlers={"user.create": explode})

    assert dispatch(handler_set, "user.create", {"username": "tech.one"}, _no_session) is False
    assert any(record.getMessage() == "notification.consume_failed" for record in caplog.records)


def test_subscribed_handlers_receive_bus_payloads() -> None:
    bus = InProcessEventBus()
    seen: list[dict[str, Any]] = []
    handler_set = HandlerSet(
        consumer="reports",
        exchange="patient-exchange",
        handlers={"patient.update-tr-id-number": lambda session, payload: seen.append(payload)},
    )

    subscribe_handlers(bus, handler_set, _no_session)
    bus.publish("patient-exchange.patient.update-tr-id-number", {"old_tr_id_number": "1", "new_tr_id_number": "2"})
    bus.publish("user-exchange.user.update", {"old_username": "a", "new_username": "b"})

    assert seen == [{"old_tr_id_number": "1", "new_tr_id_number": "2"}]


def test_broker_consumer_declares_one_queue_per_routing_key() -> None:
    handler_set = HandlerSet(
        consumer="auth",
        exchange="user-exchange",
        handlers={"user.create": lambda session, payload: None, "user.delete": lambda session, payload: None},
    )
    consumer = NotificationConsumer(connection=MagicMock(), handler_sets=[handler_set], session_scope=_no_session)

    queues = consumer._queues(handler_set)

    assert [(queue.name, queue.routing_key, queue.exchange.name) for queue in queues] == [
        ("auth.user.create", "user.create", "user-exchange"),
        ("auth.user.delete", "user.delete", "user-exchange"),
    ]
    assert all(queue.durable for queue in queues)


def test_broker_consumer_acks_success_and_rejects_failure() -> None:
    def explode(session: Any, payload: dict[str, Any]) -> None:
        raise RuntimeError("boom")

    handler_set = HandlerSet(
        consumer="auth",
        exchange="user-exchange",
        handlers={"user.create": lambda session, payload: None, "user.delete": explode},
    )
    consumer = NotificationConsumer(connection=MagicMock(), handler_sets=[handler_set], session_scope=_no_session)
    callback = consumer._callback(handler_set)

    ok_message = MagicMock(delivery_info={"routing_key": "user.create"}, headers={})
    bad_message = MagicMock(delivery_info={"routing_key": "user.delete"}, headers=None)
    callback({"username": "tech.one"}, ok_message)
    callback({"username": "tech.one"}, bad_message)

    ok_message.ack.assert_called_once_with()
    ok_message.reject.assert_not_called()
    bad_message.reject.assert_called_once_with()
    bad_message.ack.assert_not_called()


def test_broker_consumer_binds_publisher_correlation_id() -> None:
    seen: list[str | None] = []
    handler_set = HandlerSet(
        consumer="reports",
        exchange="user-exchange",
        handlers={"user.update": lambda session, payload: seen.append(get_correlation_id())},
    )
    consumer = NotificationConsumer(connection=MagicMock(), handler_sets=[handler_set], session_scope=_no_session)
    message = MagicMock(delivery_info={"routing_key": "user.update"}, headers={"correlation_id": "corr-from-api"})

    consumer._callback(handler_set)({"old_username": "a", "new_username": "b"}, message)

    assert seen == ["corr-from-api"]
    assert get_correlation_id() is None
    message.ack.assert_called_once_with()


def test_broker_consumer_builds_consumers_for_each_handler_set() -> None:
    handler_sets = [
        HandlerSet(consumer="reports", exchange="patient-exchange", handlers={"patient.update-tr-id-number": lambda s, p: None}),
        HandlerSet(consumer="reports", exchange="user-exchange", handlers={"user.update": lambda s, p: None}),
    ]
    consumer = NotificationConsumer(connection=MagicMock(), handler_sets=handler_sets, session_scope=_no_session)
    consumer_factory = MagicMock()

    consumers = consumer.get_consumers(consumer_factory, channel=MagicMock())

    assert len(consumers) == 2
    assert consumer_factory.call_count == 2
    assert consumer_factory.call_args_list[0].kwargs["accept"] == ["json"]


def test_worker_consumes_auth_and_report_handler_sets() -> None:
    from medlab.worker import build_consumer

    consumer = build_consumer(MagicMock())

    assert [(handler_set.consumer, handler_set.exchange) for handler_set in consumer.handler_sets] == [
        ("auth", "user-exchange"),
        ("reports", "patient-exchange"),
        ("reports", "user-exchange"),
    ]
    assert set(consumer.handler_sets[0].handlers) == {
        "user.create",
        "user.update",
        "user.delete",
        "user.restore",
        "user.add-role",
        "user.remove-role",
    }


def test_in_process_dispatch_keeps_request_correlation_id() -> None:
    bus = InProcessEventBus()
    seen: list[str | None] = []
    handler_set = HandlerSet(
        consumer="auth",
        exchange="user-exchange",
        handlers={"user.delete": lambda session, payload: seen.append(get_correlation_id())},
    )
    subscribe_handlers(bus, handler_set, _no_session)

    with correlation_scope("req-7"):
        EventBusNotifier(bus).publish(_notification("user.delete"))

    assert seen == ["req-7"]


def test_broker_headers_carry_current_correlation_id(celery_test_app: tuple[Celery, MagicMock]) -> None:
    app, producer = celery_test_app

    with correlation_scope("req-9"):
        BrokerNotifier(app).publish(_notification())

    assert producer.publish.call_args.kwargs["headers"]["correlation_id"] == "req-9"
