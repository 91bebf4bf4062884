from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from medlab.auth.models import AuthAccount, AuthAccountRole
from medlab.auth.passwords import hash_password, verify_password
from medlab.auth.schemas import PasswordRequest
from medlab.core.config import MessagingSettings, get_messaging_settings
from medlab.platform.consumers import HandlerSet
from medlab.platform.errors import InvalidInputError, InvalidStateError, NotFoundError


logger = logging.getLogger("medlab.auth")


@dataclass
class AuthAccountSyncService:
    """Keeps ``users_auth`` in step with user-management notifications.

    Replays are tolerated: a handler whose target is missing, or whose change is
    already applied, logs and returns without touching the store.
    """

    messaging: MessagingSettings = field(default_factory=get_messaging_settings)

    def handler_set(self) -> HandlerSet:
        return HandlerSet(
            consumer="auth",
            exchange=self.messaging.user_exchange,
            handlers={
                self.messaging.user_create: self.on_user_created,
                self.messaging.user_update: self.on_username_changed,
                self.messaging.user_delete: self.on_user_deleted,
                self.messaging.user_restore: self.on_user_restored,
                self.messaging.user_add_role: self.on_role_added,
                self.messaging.user_remove_role: self.on_role_removed,
            },
        )

    def on_user_created(self, session: Session, payload: dict[str, Any]) -> None:
        username = payload["username"]
        if self._find(session, username) is not None:
            logger.info("auth.account_exists", extra={"entity": "auth_account", "operation": "create"})
            return

        account = AuthAccount(
            username=username,
            email=payload["email"],
            password_hash=hash_password(payload["password"]),
            deleted=False,
        )
        for role in sorted(set(payload.get("roles") or [])):
            account.role_links.append(AuthAccountRole(role=role))
        session.add(account)
        session.commit()
        logger.info("auth.account_created", extra={"entity": "auth_account", "entity_id": account.id, "operation": "create"})

    def on_username_changed(self, session: Session, payload: dict[str, Any]) -> None:
        account = self._require(session, payload["old_username"], "update")
        if account is None:
            return
        account.username = payload["new_username"]
        session.commit()
        logger.info("auth.account_renamed", extra={"entity": "auth_account", "entity_id": account.id, "operation": "update"})

    def on_user_deleted(self, session: Session, payload: dict[str, Any]) -> None:
        account = self._require(session, payload["username"], "delete")
        if account is None:
            return
        account.deleted = True
        session.commit()
        logger.info("auth.account_deleted", extra={"entity": "auth_account", "entity_id": account.id, "operation": "delete"})

    def on_user_restored(self, session: Session, payload: dict[str, Any]) -> None:
        account = self._require(session, payload["username"], "restore", deleted=True)
        if account is None:
            return
        account.deleted = False
        session.commit()
        logger.info("auth.account_restored", extra={"entity": "auth_account", "entity_id": account.id, "operation": "restore"})

    def on_role_added(self, session: Session, payload: dict[str, Any]) -> None:
        account = self._require(session, payload["username"], "add_role")
        if account is None:
            return
        role = payload["role"]
        if role in account.roles:
            logger.info("auth.role_already_present", extra={"entity": "auth_account", "entity_id": account.id, "operation": "add_role"})
            return
        account.role_links.append(AuthAccountRole(role=role))
        session.commit()

    def on_role_removed(self, session: Session, payload: dict[str, Any]) -> None:
        account = self._require(session, payload["username"], "remove_role")
        if account is None:
            return
        role = payload["role"]
        links = [link for link in account.role_links if link.role == role]
        if not links:
            logger.info("auth.role_not_present", extra={"entity": "auth_account", "entity_id": account.id, "operation": "remove_role"})
            return
        for link in links:
            account.role_links.remove(link)
        session.commit()

    def change_password(self, session: Session, username: str, dto: PasswordRequest) -> str:
        account = self._find(session, username)
        if account is None:
            raise NotFoundError(f"User not found with username: {username}")
        if not verify_password(dto.old_password, account.password_hash):
            logger.warning("auth.password_mismatch", extra={"entity": "auth_account", "entity_id": account.id, "operation": "change_password"})
            raise InvalidStateError("Old password is incorrect")
        if dto.old_password == dto.new_password:
            raise InvalidInputError("New password must differ from the old password")

        account.password_hash = hash_password(dto.new_password)
        session.commit()
        logger.info("auth.password_changed", extra={"entity": "auth_account", "entity_id": account.id, "operation": "change_password"})
        return "Password changed successfully"

    def get_account(self, session: Session, username: str, *, deleted: bool = False) -> AuthAccount | None:
        return self._find(session, username, deleted=deleted)

    @staticmethod
    def _find(session: Session, username: str, *, deleted: bool = False) -> AuthAccount | None:
        # Deleted usernames may be reused, so prefer the most recent row.
        return session.scalar(
            select(AuthAccount)
            .where(and_(AuthAccount.username == username, AuthAccount.deleted.is_(deleted)))
            .order_by(AuthAccount.id.desc())
            .limit(1)
        )

    def _require(self, session: Session, username: str, operation: str, *, deleted: bool = False) -> AuthAccount | None:
        account = self._find(session, username, deleted=deleted)
        if account is None:
            logger.warning("auth.account_missing", extra={"entity": "auth_account", "operation": operation})
        return account


auth_account_sync_service = AuthAccountSyncService()
