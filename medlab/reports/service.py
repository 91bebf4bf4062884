from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from medlab.core.config import MessagingSettings, get_messaging_settings
from medlab.patients.validation import validate_tr_id_number
from medlab.platform.consumers import HandlerSet
from medlab.platform.errors import AlreadyExistsError, NotFoundError
from medlab.platform.paging import PagedResponse, PageRequest
from medlab.reports.models import Report, local_now
from medlab.reports.repository import ReportRepository
from medlab.reports.schemas import ReportCreate, ReportFilters, ReportRead, ReportUpdate


logger = logging.getLogger("medlab.reports")


@dataclass
class ReportService:
    messaging: MessagingSettings = field(default_factory=get_messaging_settings)
    repository: ReportRepository = field(default_factory=ReportRepository)

    def get_report(self, session: Session, report_id: int) -> ReportRead:
        return ReportRead.model_validate(self._get_active(session, report_id))

    def list_reports(self, session: Session, page_request: PageRequest, filters: ReportFilters) -> PagedResponse[ReportRead]:
        page = self.repository.find_page(session, filters.model_dump(mode="json"), page_request)
        return PagedResponse[ReportRead].from_page(page.map(ReportRead.model_validate))

    def list_technician_reports(
        self,
        session: Session,
        technician_username: str,
        page_request: PageRequest,
        filters: ReportFilters,
    ) -> PagedResponse[ReportRead]:
        scoped = filters.model_copy(update={"technician_username": technician_username})
        return self.list_reports(session, page_request, scoped)

    def create_report(self, session: Session, technician_username: str, dto: ReportCreate) -> ReportRead:
        validate_tr_id_number(dto.patient_tr_id_number)
        self._ensure_file_number_free(session, dto.file_number)

        report = Report(
            file_number=dto.file_number,
            patient_tr_id_number=dto.patient_tr_id_number,
            diagnosis_title=dto.diagnosis_title,
            diagnosis_details=dto.diagnosis_details,
            date=dto.date or local_now(),
            photo_path=dto.photo_path,
            technician_username=technician_username,
            deleted=False,
        )
        self.repository.save(session, report)
        logger.info("report.created", extra={"entity": "report", "entity_id": report.id, "operation": "create"})
        return ReportRead.model_validate(report)

    def update_report(self, session: Session, report_id: int, dto: ReportUpdate) -> ReportRead:
        report = self._get_active(session, report_id)

        changes = {
            attribute: value
            for attribute, value in dto.model_dump(mode="python", exclude_none=True).items()
            if value != getattr(report, attribute)
        }
        if "patient_tr_id_number" in changes:
            validate_tr_id_number(changes["patient_tr_id_number"])
        if "file_number" in changes:
            self._ensure_file_number_free(session, changes["file_number"])

        if not changes:
            return ReportRead.model_validate(report)

        for attribute, value in changes.items():
            setattr(report, attribute, value)
        self.repository.save(session, report)
        logger.info("report.updated", extra={"entity": "report", "entity_id": report_id, "operation": "update"})
        return ReportRead.model_validate(report)

    def delete_report(self, session: Session, report_id: int) -> None:
        report = self._get_active(session, report_id)
        report.deleted = True
        self.repository.save(session, report)
        logger.info("report.deleted", extra={"entity": "report", "entity_id": report_id, "operation": "delete"})

    def restore_report(self, session: Session, report_id: int) -> ReportRead:
        report = self.repository.get(session, report_id, deleted=True)
        if report is None:
            raise NotFoundError(f"Report doesn't exist with id {report_id}")
        self._ensure_file_number_free(session, report.file_number)

        report.deleted = False
        self.repository.save(session, report)
        logger.info("report.restored", extra={"entity": "report", "entity_id": report_id, "operation": "restore"})
        return ReportRead.model_validate(report)

    def handler_sets(self) -> list[HandlerSet]:
        return [
            HandlerSet(
                consumer="reports",
                exchange=self.messaging.patient_exchange,
                handlers={self.messaging.patient_update_tr_id: self.on_patient_tr_id_changed},
            ),
            HandlerSet(
                consumer="reports",
                exchange=self.messaging.user_exchange,
                handlers={self.messaging.user_update: self.on_technician_renamed},
            ),
        ]

    def on_patient_tr_id_changed(self, session: Session, payload: dict[str, Any]) -> None:
        result = session.execute(
            update(Report)
            .where(Report.patient_tr_id_number == payload["old_tr_id_number"])
            .values(patient_tr_id_number=payload["new_tr_id_number"])
        )
        session.commit()
        logger.info("reports.patient_relinked", extra={"entity": "report", "operation": f"rows={result.rowcount}"})

    def on_technician_renamed(self, session: Session, payload: dict[str, Any]) -> None:
        result = session.execute(
            update(Report)
            .where(Report.technician_username == payload["old_username"])
            .values(technician_username=payload["new_username"])
        )
        session.commit()
        logger.info("reports.technician_renamed", extra={"entity": "report", "operation": f"rows={result.rowcount}"})

    def _ensure_file_number_free(self, session: Session, file_number: str) -> None:
        if self.repository.exists_active(session, Report.file_number, file_number):
            logger.warning("report.file_number_taken", extra={"entity": "report", "error_kind": "already_exists"})
            raise AlreadyExistsError(f"Report already exists with file number {file_number}")

    def _get_active(self, session: Session, report_id: int) -> Report:
        report = self.repository.get(session, report_id)
        if report is None:
            raise NotFoundError(f"Report doesn't exist with id {report_id}")
        return report


report_service = ReportService()
