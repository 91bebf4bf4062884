from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_STATE = "invalid_state"
    INVALID_INPUT = "invalid_input"
    NOTIFICATION_DELIVERY = "notification_delivery"


class DomainError(Exception):
    """Base class for failures a service reports to its caller.

    ``kind`` is what the HTTP boundary maps to a status code; ``detail`` is the
    human-readable message.
    """

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(DomainError):
    kind = ErrorKind.ALREADY_EXISTS


class InvalidStateError(DomainError):
    kind = ErrorKind.INVALID_STATE


class InvalidInputError(DomainError):
    kind = ErrorKind.INVALID_INPUT


class InvalidTrIdNumberError(InvalidInputError):
    """Raised when a Turkish identity number fails format or checksum validation."""


class NotificationDeliveryError(DomainError):
    kind = ErrorKind.NOTIFICATION_DELIVERY

    def __init__(self, detail: str, cause: BaseException | None = None) -> None:
        super().__init__(detail)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause
