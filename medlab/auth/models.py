from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medlab.core.database import Base


class AuthAccount(Base):
    __tablename__ = "users_auth"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    role_links: Mapped[list[AuthAccountRole]] = relationship(
        "AuthAccountRole",
        back_populates="account",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def roles(self) -> list[str]:
        return sorted(link.role for link in self.role_links)


class AuthAccountRole(Base):
    __tablename__ = "users_auth_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, ForeignKey("users_auth.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    account: Mapped[AuthAccount] = relationship("AuthAccount", back_populates="role_links")

    __table_args__ = (UniqueConstraint("account_id", "role", name="uq_users_auth_roles_account_role"),)
