from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medlab.core.database import Base
from medlab.core.events import InProcessEventBus
from medlab.platform.consumers import subscribe_handlers
from medlab.platform.errors import AlreadyExistsError, InvalidInputError, NotFoundError
from medlab.platform.notify import EventBusNotifier
from medlab.platform.paging import PageRequest
from medlab.reports.schemas import ReportCreate, ReportFilters, ReportUpdate
from medlab.reports.service import ReportService
from medlab.users.schemas import Gender, Role, UserCreate, UserUpdate
from medlab.users.service import UserService


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _create_dto(file_number: str = "F-100", **overrides: object) -> ReportCreate:
    fields: dict[str, object] = {
        "file_number": file_number,
        "patient_tr_id_number": "10000000146",
        "diagnosis_title": "Complete blood count",
        "diagnosis_details": "Hemoglobin slightly low",
        "date": datetime(2024, 4, 1, 8, 15, 0),
    }
    fields.update(overrides)
    return ReportCreate(**fields)


def test_create_report_records_technician(db_session: Session) -> None:
    service = ReportService()

    created = service.create_report(db_session, "tech.one", _create_dto())

    assert created.technician_username == "tech.one"
    assert created.date == datetime(2024, 4, 1, 8, 15, 0)


def test_create_report_defaults_date_to_now(db_session: Session) -> None:
    service = ReportService()
    before = datetime.now()

    created = service.create_report(db_session, "tech.one", _create_dto(date=None))

    assert before <= created.date <= datetime.now()


def test_create_report_validates_patient_tr_id(db_session: Session) -> None:
    with pytest.raises(InvalidInputError):
        ReportService().create_report(db_session, "tech.one", _create_dto(patient_tr_id_number="12345678951"))


def test_file_number_is_unique_among_active_reports(db_session: Session) -> None:
    service = ReportService()
    first = service.create_report(db_session, "tech.one", _create_dto())

    with pytest.raises(AlreadyExistsError):
        service.create_report(db_session, "tech.two", _create_dto())

    service.delete_report(db_session, first.id)
    reused = service.create_report(db_session, "tech.two", _create_dto())

    with pytest.raises(AlreadyExistsError):
        service.restore_report(db_session, first.id)
    assert reused.file_number == "F-100"


def test_update_report_is_partial(db_session: Session) -> None:
    service = ReportService()
    created = service.create_report(db_session, "tech.one", _create_dto())

    updated = service.update_report(db_session, created.id, ReportUpdate(diagnosis_title="Iron panel"))

    assert updated.diagnosis_title == "Iron panel"
    assert updated.diagnosis_details == "Hemoglobin slightly low"
    assert updated.file_number == "F-100"


def test_update_report_rejects_taken_file_number(db_session: Session) -> None:
    service = ReportService()
    service.create_report(db_session, "tech.one", _create_dto("F-1"))
    second = service.create_report(db_session, "tech.one", _create_dto("F-2"))

    with pytest.raises(AlreadyExistsError):
        service.update_report(db_session, second.id, ReportUpdate(file_number="F-1"))


def test_delete_and_restore(db_session: Session) -> None:
    service = ReportService()
    created = service.create_report(db_session, "tech.one", _create_dto())

    service.delete_report(db_session, created.id)
    with pytest.raises(NotFoundError):
        service.get_report(db_session, created.id)

    restored = service.restore_report(db_session, created.id)
    assert restored.id == created.id


def test_technician_listing_is_scoped_to_caller(db_session: Session) -> None:
    service = ReportService()
    service.create_report(db_session, "tech.one", _create_dto("F-1"))
    service.create_report(db_session, "tech.two", _create_dto("F-2"))

    mine = service.list_technician_reports(
        db_session,
        "tech.one",
        PageRequest(),
        ReportFilters(technician_username="tech.two"),
    )

    assert [report.file_number for report in mine.content] == ["F-1"]


def test_list_reports_by_diagnosis_fragment(db_session: Session) -> None:
    service = ReportService()
    service.create_report(db_session, "tech.one", _create_dto("F-1", diagnosis_title="Thyroid panel"))
    service.create_report(db_session, "tech.one", _create_dto("F-2", diagnosis_title="Lipid panel"))
    service.create_report(db_session, "tech.one", _create_dto("F-3", diagnosis_title="Urinalysis"))

    response = service.list_reports(
        db_session,
        PageRequest(sort_by="file_number", direction="DESC"),
        ReportFilters(diagnosis_title="panel"),
    )

    assert [report.file_number for report in response.content] == ["F-2", "F-1"]


def test_technician_rename_relinks_reports(db_session: Session) -> None:
    bus = InProcessEventBus()
    reports = ReportService()

    @contextmanager
    def session_scope() -> Iterator[Session]:
        yield db_session

    for handler_set in reports.handler_sets():
        subscribe_handlers(bus, handler_set, session_scope)
    users = UserService(notifier=EventBusNotifier(bus))

    technician = users.create_user(
        db_session,
        UserCreate(
            first_name="Ayse",
            last_name="Yilmaz",
            username="tech.one",
            hospital_id="H-100",
            password="s3cret-pass",
            email="tech.one@lab.test",
            gender=Gender.FEMALE,
            roles=[Role.TECHNICIAN],
        ),
    )
    created = reports.create_report(db_session, "tech.one", _create_dto())

    users.update_user(db_session, technician.id, UserUpdate(username="tech.renamed"))

    db_session.expire_all()
    assert reports.get_report(db_session, created.id).technician_username == "tech.renamed"
