from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from medlab.core.config import MessagingSettings, get_messaging_settings, get_settings
from medlab.patients.models import Patient
from medlab.patients.repository import PatientRepository
from medlab.patients.schemas import PatientCreate, PatientFilters, PatientRead, PatientUpdate
from medlab.patients.validation import validate_tr_id_number
from medlab.platform.errors import AlreadyExistsError, NotFoundError
from medlab.platform.notify import ChangeNotification, EventBusNotifier, Notifier, build_notifier, notify_before_commit
from medlab.platform.paging import PagedResponse, PageRequest


logger = logging.getLogger("medlab.patients")


@dataclass
class PatientService:
    notifier: Notifier = field(default_factory=EventBusNotifier)
    messaging: MessagingSettings = field(default_factory=get_messaging_settings)
    repository: PatientRepository = field(default_factory=PatientRepository)

    def get_patient(self, session: Session, patient_id: int) -> PatientRead:
        return PatientRead.model_validate(self._get_active(session, patient_id))

    def list_patients(
        self,
        session: Session,
        page_request: PageRequest,
        filters: PatientFilters,
    ) -> PagedResponse[PatientRead]:
        page = self.repository.find_page(session, filters.model_dump(mode="json"), page_request)
        return PagedResponse[PatientRead].from_page(page.map(PatientRead.model_validate))

    def create_patient(self, session: Session, dto: PatientCreate) -> PatientRead:
        validate_tr_id_number(dto.tr_id_number)
        self._ensure_tr_id_free(session, dto.tr_id_number)

        payload = dto.model_dump(mode="python")
        if dto.blood_type is not None:
            payload["blood_type"] = dto.blood_type.value
        patient = self.repository.save(session, Patient(**payload, deleted=False))
        logger.info("patient.created", extra={"entity": "patient", "entity_id": patient.id, "operation": "create"})
        return PatientRead.model_validate(patient)

    def update_patient(self, session: Session, patient_id: int, dto: PatientUpdate) -> PatientRead:
        patient = self._get_active(session, patient_id)
        old_tr_id_number = patient.tr_id_number

        changes: dict[str, Any] = {}
        for attribute, value in dto.model_dump(mode="python", exclude_none=True).items():
            if attribute == "blood_type":
                value = dto.blood_type.value if dto.blood_type is not None else None
            if value != getattr(patient, attribute):
                changes[attribute] = value

        new_tr_id_number = changes.get("tr_id_number")
        if new_tr_id_number is not None:
            validate_tr_id_number(new_tr_id_number)
            self._ensure_tr_id_free(session, new_tr_id_number)

        if not changes:
            return PatientRead.model_validate(patient)

        for attribute, value in changes.items():
            setattr(patient, attribute, value)

        if new_tr_id_number is not None:
            notify_before_commit(
                session,
                self.notifier,
                ChangeNotification(
                    exchange=self.messaging.patient_exchange,
                    routing_key=self.messaging.patient_update_tr_id,
                    payload={"old_tr_id_number": old_tr_id_number, "new_tr_id_number": new_tr_id_number},
                ),
            )
        self.repository.save(session, patient)
        logger.info("patient.updated", extra={"entity": "patient", "entity_id": patient_id, "operation": "update"})
        return PatientRead.model_validate(patient)

    def delete_patient(self, session: Session, patient_id: int) -> None:
        patient = self._get_active(session, patient_id)
        patient.deleted = True
        self.repository.save(session, patient)
        logger.info("patient.deleted", extra={"entity": "patient", "entity_id": patient_id, "operation": "delete"})

    def restore_patient(self, session: Session, patient_id: int) -> PatientRead:
        patient = self.repository.get(session, patient_id, deleted=True)
        if patient is None:
            raise NotFoundError(f"Patient doesn't exist with id {patient_id}")
        self._ensure_tr_id_free(session, patient.tr_id_number)

        patient.deleted = False
        self.repository.save(session, patient)
        logger.info("patient.restored", extra={"entity": "patient", "entity_id": patient_id, "operation": "restore"})
        return PatientRead.model_validate(patient)

    def _ensure_tr_id_free(self, session: Session, tr_id_number: str) -> None:
        if self.repository.exists_active(session, Patient.tr_id_number, tr_id_number):
            logger.warning("patient.tr_id_taken", extra={"entity": "patient", "error_kind": "already_exists"})
            raise AlreadyExistsError(f"Patient already exists with TR ID number {tr_id_number}")

    def _get_active(self, session: Session, patient_id: int) -> Patient:
        patient = self.repository.get(session, patient_id)
        if patient is None:
            raise NotFoundError(f"Patient doesn't exist with id {patient_id}")
        return patient


patient_service = PatientService(notifier=build_notifier(get_settings().notifier_backend))
