from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from medlab.core.database import Base


def local_now() -> datetime:
    return datetime.now()


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_number: Mapped[str] = mapped_column(String(64), nullable=False)
    patient_tr_id_number: Mapped[str] = mapped_column(String(11), nullable=False)
    diagnosis_title: Mapped[str] = mapped_column(String(255), nullable=False)
    diagnosis_details: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=local_now)
    photo_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    technician_username: Mapped[str] = mapped_column(String(100), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    __table_args__ = (
        Index("ix_reports_file_number_deleted", "file_number", "deleted"),
        Index("ix_reports_patient_tr_id_number", "patient_tr_id_number"),
        Index("ix_reports_technician_username", "technician_username"),
    )
