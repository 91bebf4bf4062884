from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medlab.core.auth import AuthUser
from medlab.core.database import get_db
from medlab.core.rbac import require_roles
from medlab.platform.paging import PagedResponse, PageRequest
from medlab.reports.schemas import ReportCreate, ReportFilters, ReportRead, ReportUpdate
from medlab.reports.service import ReportService, report_service


router = APIRouter(prefix="/api/reports", tags=["reports"])

require_admin = require_roles("ADMIN")
require_technician = require_roles("TECHNICIAN")
require_reader = require_roles("ADMIN", "TECHNICIAN")


def get_report_service() -> ReportService:
    return report_service


def get_report_filters(
    file_number: str | None = Query(default=None, alias="fileNumber"),
    patient_tr_id_number: str | None = Query(default=None, alias="patientTrIdNumber"),
    diagnosis_title: str | None = Query(default=None, alias="diagnosisTitle"),
    diagnosis_details: str | None = Query(default=None, alias="diagnosisDetails"),
    date: str | None = Query(default=None),
    photo_path: str | None = Query(default=None, alias="photoPath"),
    technician_username: str | None = Query(default=None, alias="technicianUsername"),
    deleted: bool | None = Query(default=None),
) -> ReportFilters:
    return ReportFilters(
        file_number=file_number,
        patient_tr_id_number=patient_tr_id_number,
        diagnosis_title=diagnosis_title,
        diagnosis_details=diagnosis_details,
        date=date,
        photo_path=photo_path,
        technician_username=technician_username,
        deleted=deleted,
    )


def get_page_request(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=500),
    sort_by: str = Query(default="date", alias="sortBy"),
    direction: str = Query(default="DESC", pattern="(?i)^(asc|desc)$"),
) -> PageRequest:
    return PageRequest(page=page, size=size, sort_by=sort_by, direction=direction)


@router.get("", response_model=PagedResponse[ReportRead])
def list_reports(
    page_request: PageRequest = Depends(get_page_request),
    filters: ReportFilters = Depends(get_report_filters),
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    _: AuthUser = Depends(require_admin),
) -> PagedResponse[ReportRead]:
    return service.list_reports(db, page_request, filters)


@router.get("/me", response_model=PagedResponse[ReportRead])
def list_my_reports(
    page_request: PageRequest = Depends(get_page_request),
    filters: ReportFilters = Depends(get_report_filters),
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    user: AuthUser = Depends(require_technician),
) -> PagedResponse[ReportRead]:
    return service.list_technician_reports(db, user.sub, page_request, filters)


@router.post("", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    user: AuthUser = Depends(require_technician),
) -> ReportRead:
    return service.create_report(db, user.sub, payload)


@router.get("/{report_id}", response_model=ReportRead)
def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    _: AuthUser = Depends(require_reader),
) -> ReportRead:
    return service.get_report(db, report_id)


@router.put("/{report_id}", response_model=ReportRead)
def update_report(
    report_id: int,
    payload: ReportUpdate,
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    _: AuthUser = Depends(require_technician),
) -> ReportRead:
    return service.update_report(db, report_id, payload)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    _: AuthUser = Depends(require_reader),
) -> Response:
    service.delete_report(db, report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{report_id}/restore", response_model=ReportRead)
def restore_report(
    report_id: int,
    db: Session = Depends(get_db),
    service: ReportService = Depends(get_report_service),
    _: AuthUser = Depends(require_admin),
) -> ReportRead:
    return service.restore_report(db, report_id)
