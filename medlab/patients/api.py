from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medlab.core.auth import AuthUser
from medlab.core.database import get_db
from medlab.core.rbac import require_roles
from medlab.patients.schemas import PatientCreate, PatientFilters, PatientRead, PatientUpdate
from medlab.patients.service import PatientService, patient_service
from medlab.platform.paging import PagedResponse, PageRequest


router = APIRouter(prefix="/api/patients", tags=["patients"])

require_staff = require_roles("ADMIN", "SECRETARY", "TECHNICIAN")
require_secretary = require_roles("ADMIN", "SECRETARY")


def get_patient_service() -> PatientService:
    return patient_service


@router.get("", response_model=PagedResponse[PatientRead])
def list_patients(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=500),
    sort_by: str = Query(default="id", alias="sortBy"),
    direction: str = Query(default="ASC", pattern="(?i)^(asc|desc)$"),
    tr_id_number: str | None = Query(default=None, alias="trIdNumber"),
    first_name: str | None = Query(default=None, alias="firstName"),
    last_name: str | None = Query(default=None, alias="lastName"),
    gender: str | None = Query(default=None),
    blood_type: str | None = Query(default=None, alias="bloodType"),
    birth_date: str | None = Query(default=None, alias="birthDate"),
    deleted: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_staff),
) -> PagedResponse[PatientRead]:
    return service.list_patients(
        db,
        PageRequest(page=page, size=size, sort_by=sort_by, direction=direction),
        PatientFilters(
            tr_id_number=tr_id_number,
            first_name=first_name,
            last_name=last_name,
            gender=gender,
            blood_type=blood_type,
            birth_date=birth_date,
            deleted=deleted,
        ),
    )


@router.post("", response_model=PatientRead, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_secretary),
) -> PatientRead:
    return service.create_patient(db, payload)


@router.get("/{patient_id}", response_model=PatientRead)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_staff),
) -> PatientRead:
    return service.get_patient(db, patient_id)


@router.put("/{patient_id}", response_model=PatientRead)
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_secretary),
) -> PatientRead:
    return service.update_patient(db, patient_id, payload)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_secretary),
) -> Response:
    service.delete_patient(db, patient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{patient_id}/restore", response_model=PatientRead)
def restore_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    service: PatientService = Depends(get_patient_service),
    _: AuthUser = Depends(require_secretary),
) -> PatientRead:
    return service.restore_patient(db, patient_id)
