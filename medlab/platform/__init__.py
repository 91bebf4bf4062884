from medlab.platform.errors import (
    AlreadyExistsError,
    DomainError,
    ErrorKind,
    InvalidInputError,
    InvalidStateError,
    InvalidTrIdNumberError,
    NotFoundError,
    NotificationDeliveryError,
)
from medlab.platform.filtering import FilterField, MatchKind, build_filter_predicate
from medlab.platform.notify import (
    BrokerNotifier,
    ChangeNotification,
    EventBusNotifier,
    Notifier,
    build_notifier,
    notify_before_commit,
    send_notification,
)
from medlab.platform.paging import Page, PagedResponse, PageRequest, find_page
from medlab.platform.repository import SoftDeleteRepository

__all__ = [
    "AlreadyExistsError",
    "DomainError",
    "ErrorKind",
    "InvalidInputError",
    "InvalidStateError",
    "InvalidTrIdNumberError",
    "NotFoundError",
    "NotificationDeliveryError",
    "FilterField",
    "MatchKind",
    "build_filter_predicate",
    "BrokerNotifier",
    "ChangeNotification",
    "EventBusNotifier",
    "Notifier",
    "build_notifier",
    "send_notification",
    "notify_before_commit",
    "Page",
    "PagedResponse",
    "PageRequest",
    "find_page",
    "SoftDeleteRepository",
]
