from __future__ import annotations

from medlab.platform.filtering import FilterField, MatchKind
from medlab.platform.repository import SoftDeleteRepository
from medlab.reports.models import Report


class ReportRepository(SoftDeleteRepository[Report]):
    model = Report
    filter_fields = (
        FilterField("technician_username", MatchKind.EXACT, Report.technician_username),
        FilterField("file_number", MatchKind.EXACT, Report.file_number),
        FilterField("patient_tr_id_number", MatchKind.EXACT, Report.patient_tr_id_number),
        FilterField("diagnosis_title", MatchKind.PARTIAL, Report.diagnosis_title),
        FilterField("diagnosis_details", MatchKind.PARTIAL, Report.diagnosis_details),
        FilterField("date", MatchKind.DATETIME, Report.date),
        FilterField("photo_path", MatchKind.PARTIAL, Report.photo_path),
        FilterField("deleted", MatchKind.DELETED, Report.deleted),
    )
