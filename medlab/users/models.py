from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medlab.core.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    hospital_id: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    role_links: Mapped[list[UserRole]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserRole.role",
    )

    __table_args__ = (
        Index("ix_users_username_deleted", "username", "deleted"),
        Index("ix_users_email_deleted", "email", "deleted"),
    )

    @property
    def roles(self) -> list[str]:
        return sorted(link.role for link in self.role_links)

    def has_role(self, role: str) -> bool:
        return any(link.role == role for link in self.role_links)

    def add_role(self, role: str) -> None:
        self.role_links.append(UserRole(role=role))

    def remove_role(self, role: str) -> None:
        for link in list(self.role_links):
            if link.role == role:
                self.role_links.remove(link)


class UserRole(Base):
    __tablename__ = "user_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    user: Mapped[User] = relationship("User", back_populates="role_links")

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)
