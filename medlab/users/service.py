from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NoReturn

from sqlalchemy.orm import Session

from medlab.core.config import MessagingSettings, get_messaging_settings, get_settings
from medlab.platform.errors import AlreadyExistsError, InvalidStateError, NotFoundError
from medlab.platform.notify import ChangeNotification, EventBusNotifier, Notifier, build_notifier, notify_before_commit
from medlab.platform.paging import PagedResponse, PageRequest
from medlab.users.models import User
from medlab.users.repository import UserRepository
from medlab.users.schemas import Role, UserCreate, UserFilters, UserRead, UserUpdate


logger = logging.getLogger("medlab.users")


@dataclass
class UserService:
    """User management writes follow validate, mutate, notify, commit.

    Every precondition is checked before the row is touched. A notification
    failure rolls the session back, so the store never sees a mutation whose
    notification did not go out.
    """

    notifier: Notifier = field(default_factory=EventBusNotifier)
    messaging: MessagingSettings = field(default_factory=get_messaging_settings)
    repository: UserRepository = field(default_factory=UserRepository)

    def get_user(self, session: Session, user_id: int) -> UserRead:
        user = self._get_active(session, user_id)
        return UserRead.model_validate(user)

    def list_users(self, session: Session, page_request: PageRequest, filters: UserFilters) -> PagedResponse[UserRead]:
        page = self.repository.find_page(session, filters.model_dump(mode="json"), page_request)
        logger.debug("users.listed", extra={"entity": "user", "operation": f"page={page.page} total={page.total_elements}"})
        return PagedResponse[UserRead].from_page(page.map(UserRead.model_validate))

    def get_username_by_email(self, session: Session, email: str) -> str:
        user = self.repository.find_one_by(session, User.email, email)
        if user is None:
            logger.warning("user.not_found", extra={"entity": "user", "error_kind": "not_found"})
            raise NotFoundError(f"No users registered to this email address were found: {email}")
        return user.username

    def get_current_user(self, session: Session, username: str) -> UserRead:
        return UserRead.model_validate(self._get_active_by_username(session, username))

    def create_user(self, session: Session, dto: UserCreate) -> UserRead:
        if self.repository.exists_active(session, User.username, dto.username):
            self._reject(AlreadyExistsError(f"Username '{dto.username}' is already taken"), "create")
        if self.repository.exists_active(session, User.email, dto.email):
            self._reject(AlreadyExistsError(f"Email '{dto.email}' is already taken"), "create")

        roles = sorted({role.value for role in dto.roles})
        user = User(
            first_name=dto.first_name,
            last_name=dto.last_name,
            username=dto.username,
            hospital_id=dto.hospital_id,
            email=dto.email,
            gender=dto.gender.value,
            deleted=False,
        )
        for role in roles:
            user.add_role(role)

        self._notify(
            session,
            self.messaging.user_create,
            {"username": dto.username, "password": dto.password, "email": dto.email, "roles": roles},
        )
        self.repository.save(session, user)
        logger.info("user.created", extra={"entity": "user", "entity_id": user.id, "operation": "create"})
        return UserRead.model_validate(user)

    def update_user(self, session: Session, user_id: int, dto: UserUpdate) -> UserRead:
        user = self._get_active(session, user_id)
        return self._apply_update(session, user, dto)

    def update_current_user(self, session: Session, username: str, dto: UserUpdate) -> UserRead:
        user = self._get_active_by_username(session, username)
        return self._apply_update(session, user, dto)

    def delete_user(self, session: Session, user_id: int) -> None:
        user = self._get_active(session, user_id)
        user.deleted = True
        self._notify(session, self.messaging.user_delete, {"username": user.username})
        self.repository.save(session, user)
        logger.info("user.deleted", extra={"entity": "user", "entity_id": user_id, "operation": "delete"})

    def restore_user(self, session: Session, user_id: int) -> UserRead:
        user = self.repository.get(session, user_id, deleted=True)
        if user is None:
            self._reject(NotFoundError(f"User doesn't exist with id {user_id}"), "restore")
        user.deleted = False
        self._notify(session, self.messaging.user_restore, {"username": user.username})
        self.repository.save(session, user)
        logger.info("user.restored", extra={"entity": "user", "entity_id": user_id, "operation": "restore"})
        return UserRead.model_validate(user)

    def add_role(self, session: Session, user_id: int, role: Role) -> UserRead:
        user = self._get_active(session, user_id)
        if user.has_role(role.value):
            self._reject(InvalidStateError(f"User already has this Role. Role: {role.value}"), "add_role")

        user.add_role(role.value)
        self._notify(session, self.messaging.user_add_role, {"username": user.username, "role": role.value})
        self.repository.save(session, user)
        logger.info("user.role_added", extra={"entity": "user", "entity_id": user_id, "operation": "add_role"})
        return UserRead.model_validate(user)

    def remove_role(self, session: Session, user_id: int, role: Role) -> UserRead:
        user = self._get_active(session, user_id)
        if len(user.role_links) <= 1:
            self._reject(InvalidStateError("Cannot remove role. User must have at least one role"), "remove_role")
        if not user.has_role(role.value):
            self._reject(InvalidStateError(f"The user does not own this role! Role: {role.value}"), "remove_role")

        user.remove_role(role.value)
        self._notify(session, self.messaging.user_remove_role, {"username": user.username, "role": role.value})
        self.repository.save(session, user)
        logger.info("user.role_removed", extra={"entity": "user", "entity_id": user_id, "operation": "remove_role"})
        return UserRead.model_validate(user)

    def _apply_update(self, session: Session, user: User, dto: UserUpdate) -> UserRead:
        old_username = user.username
        changes: dict[str, Any] = {}

        if dto.email is not None and dto.email != user.email:
            if self.repository.exists_active(session, User.email, dto.email):
                self._reject(AlreadyExistsError("Email is already taken"), "update")
            changes["email"] = dto.email
        if dto.username is not None and dto.username != user.username:
            if self.repository.exists_active(session, User.username, dto.username):
                self._reject(AlreadyExistsError("Username is taken"), "update")
            changes["username"] = dto.username
        if dto.first_name is not None and dto.first_name != user.first_name:
            changes["first_name"] = dto.first_name
        if dto.last_name is not None and dto.last_name != user.last_name:
            changes["last_name"] = dto.last_name
        if dto.gender is not None and dto.gender.value != user.gender:
            changes["gender"] = dto.gender.value

        if not changes:
            return UserRead.model_validate(user)

        for attribute, value in changes.items():
            setattr(user, attribute, value)

        if "username" in changes:
            self._notify(
                session,
                self.messaging.user_update,
                {"old_username": old_username, "new_username": changes["username"]},
            )
        self.repository.save(session, user)
        logger.info("user.updated", extra={"entity": "user", "entity_id": user.id, "operation": "update"})
        return UserRead.model_validate(user)

    def _notify(self, session: Session, routing_key: str, payload: dict[str, Any]) -> None:
        notification = ChangeNotification(exchange=self.messaging.user_exchange, routing_key=routing_key, payload=payload)
        notify_before_commit(session, self.notifier, notification)

    def _get_active(self, session: Session, user_id: int) -> User:
        user = self.repository.get(session, user_id)
        if user is None:
            self._reject(NotFoundError(f"User doesn't exist with id {user_id}"), "lookup")
        return user

    def _get_active_by_username(self, session: Session, username: str) -> User:
        user = self.repository.find_one_by(session, User.username, username)
        if user is None:
            self._reject(NotFoundError(f"User doesn't exist with username {username}"), "lookup")
        return user

    @staticmethod
    def _reject(error: Exception, operation: str) -> NoReturn:
        logger.warning(
            "user.rejected",
            extra={"entity": "user", "operation": operation, "error_kind": getattr(error, "kind", None), "error": str(error)},
        )
        raise error


user_service = UserService(notifier=build_notifier(get_settings().notifier_backend))
