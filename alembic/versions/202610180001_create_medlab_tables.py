"""create users, auth accounts, patients and reports

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("hospital_id", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username_deleted", "users", ["username", "deleted"], unique=False)
    op.create_index("ix_users_email_deleted", "users", ["email", "deleted"], unique=False)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    op.create_table(
        "users_auth",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_auth_username", "users_auth", ["username"], unique=False)

    op.create_table(
        "users_auth_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["users_auth.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "role", name="uq_users_auth_roles_account_role"),
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tr_id_number", sa.String(length=11), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
        sa.Column("blood_type", sa.String(length=8), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patients_tr_id_number_deleted", "patients", ["tr_id_number", "deleted"], unique=False)

    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("file_number", sa.String(length=64), nullable=False),
        sa.Column("patient_tr_id_number", sa.String(length=11), nullable=False),
        sa.Column("diagnosis_title", sa.String(length=255), nullable=False),
        sa.Column("diagnosis_details", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("photo_path", sa.String(length=512), nullable=True),
        sa.Column("technician_username", sa.String(length=100), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reports_file_number_deleted", "reports", ["file_number", "deleted"], unique=False)
    op.create_index("ix_reports_patient_tr_id_number", "reports", ["patient_tr_id_number"], unique=False)
    op.create_index("ix_reports_technician_username", "reports", ["technician_username"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_reports_technician_username", table_name="reports")
    op.drop_index("ix_reports_patient_tr_id_number", table_name="reports")
    op.drop_index("ix_reports_file_number_deleted", table_name="reports")
    op.drop_table("reports")

    op.drop_index("ix_patients_tr_id_number_deleted", table_name="patients")
    op.drop_table("patients")

    op.drop_table("users_auth_roles")
    op.drop_index("ix_users_auth_username", table_name="users_auth")
    op.drop_table("users_auth")

    op.drop_table("user_roles")
    op.drop_index("ix_users_email_deleted", table_name="users")
    op.drop_index("ix_users_username_deleted", table_name="users")
    op.drop_table("users")
