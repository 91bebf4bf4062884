from __future__ import annotations

from medlab.patients.models import Patient
from medlab.platform.filtering import FilterField, MatchKind
from medlab.platform.repository import SoftDeleteRepository


class PatientRepository(SoftDeleteRepository[Patient]):
    model = Patient
    filter_fields = (
        FilterField("tr_id_number", MatchKind.EXACT, Patient.tr_id_number),
        FilterField("first_name", MatchKind.PARTIAL, Patient.first_name),
        FilterField("last_name", MatchKind.PARTIAL, Patient.last_name),
        FilterField("gender", MatchKind.EXACT, Patient.gender),
        FilterField("blood_type", MatchKind.EXACT, Patient.blood_type),
        FilterField("birth_date", MatchKind.DATE, Patient.birth_date),
        FilterField("deleted", MatchKind.DELETED, Patient.deleted),
    )
