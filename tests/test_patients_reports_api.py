from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medlab.core.auth import AuthUser, get_current_user
from medlab.core.config import get_settings
from medlab.core.database import Base, get_db
from medlab.main import app


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


@pytest.fixture()
def current_user() -> AuthUser:
    return AuthUser(sub="tech.one", roles=["TECHNICIAN", "SECRETARY"])


@pytest.fixture()
def client(db_session: Session, current_user: AuthUser) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return current_user

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _patient_payload(tr_id_number: str = "10000000146", **overrides: object) -> dict:
    payload: dict[str, object] = {
        "tr_id_number": tr_id_number,
        "first_name": "Can",
        "last_name": "Demir",
        "birth_date": "1990-05-17",
        "gender": "MALE",
        "blood_type": "AB+",
    }
    payload.update(overrides)
    return payload


def _report_payload(file_number: str = "F-100", **overrides: object) -> dict:
    payload: dict[str, object] = {
        "file_number": file_number,
        "patient_tr_id_number": "10000000146",
        "diagnosis_title": "Complete blood count",
        "diagnosis_details": "Within reference ranges",
        "date": "2024-04-01T08:15:00",
    }
    payload.update(overrides)
    return payload


def test_create_patient_and_filter_by_birth_date(client: TestClient) -> None:
    created = client.post("/api/patients", json=_patient_payload())
    assert created.status_code == 201
    assert created.json()["blood_type"] == "AB+"
    client.post("/api/patients", json=_patient_payload("12345678950", birth_date="1985-01-01"))

    response = client.get("/api/patients", params={"birthDate": "1990-05-17"})

    assert response.status_code == 200
    assert [patient["tr_id_number"] for patient in response.json()["content"]] == ["10000000146"]


def test_invalid_tr_id_is_bad_request(client: TestClient) -> None:
    response = client.post("/api/patients", json=_patient_payload("12345678951"))

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


def test_duplicate_tr_id_is_conflict(client: TestClient) -> None:
    client.post("/api/patients", json=_patient_payload())

    response = client.post("/api/patients", json=_patient_payload(first_name="Other"))

    assert response.status_code == 409


def test_patient_tr_id_change_relinks_reports(client: TestClient) -> None:
    patient_id = client.post("/api/patients", json=_patient_payload()).json()["id"]
    report_id = client.post("/api/reports", json=_report_payload()).json()["id"]

    updated = client.put(f"/api/patients/{patient_id}", json={"tr_id_number": "12345678950"})
    assert updated.status_code == 200

    report = client.get(f"/api/reports/{report_id}")
    assert report.status_code == 200
    assert report.json()["patient_tr_id_number"] == "12345678950"


def test_patient_delete_and_restore(client: TestClient, current_user: AuthUser) -> None:
    patient_id = client.post("/api/patients", json=_patient_payload()).json()["id"]

    assert client.delete(f"/api/patients/{patient_id}").status_code == 204
    assert client.get(f"/api/patients/{patient_id}").status_code == 404
    assert client.put(f"/api/patients/{patient_id}/restore").status_code == 200

    current_user.roles = ["TECHNICIAN"]
    assert client.delete(f"/api/patients/{patient_id}").status_code == 403


def test_create_report_uses_caller_as_technician(client: TestClient) -> None:
    response = client.post("/api/reports", json=_report_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["technician_username"] == "tech.one"
    assert body["date"].startswith("2024-04-01T08:15:00")


def test_duplicate_file_number_is_conflict(client: TestClient) -> None:
    client.post("/api/reports", json=_report_payload())

    response = client.post("/api/reports", json=_report_payload())

    assert response.status_code == 409
    assert response.json()["code"] == "already_exists"


def test_my_reports_only_lists_caller_reports(client: TestClient, current_user: AuthUser) -> None:
    client.post("/api/reports", json=_report_payload("F-1"))
    current_user.sub = "tech.two"
    client.post("/api/reports", json=_report_payload("F-2"))
    current_user.sub = "tech.one"

    mine = client.get("/api/reports/me", params={"technicianUsername": "tech.two"})

    assert mine.status_code == 200
    assert [report["file_number"] for report in mine.json()["content"]] == ["F-1"]


def test_admin_report_listing_with_datetime_filter(client: TestClient, current_user: AuthUser) -> None:
    client.post("/api/reports", json=_report_payload("F-1", date="2024-04-01T08:15:00"))
    client.post("/api/reports", json=_report_payload("F-2", date="2024-04-02T09:00:00"))
    current_user.roles = ["ADMIN"]

    exact = client.get("/api/reports", params={"date": "2024-04-02 09:00:00.00000"})
    lenient = client.get("/api/reports", params={"date": "not-a-date"})

    assert [report["file_number"] for report in exact.json()["content"]] == ["F-2"]
    assert [report["file_number"] for report in lenient.json()["content"]] == ["F-2", "F-1"]


def test_report_update_delete_restore(client: TestClient, current_user: AuthUser) -> None:
    report_id = client.post("/api/reports", json=_report_payload()).json()["id"]

    updated = client.put(f"/api/reports/{report_id}", json={"photo_path": "/scans/f-100.png"})
    assert updated.status_code == 200
    assert updated.json()["photo_path"] == "/scans/f-100.png"

    assert client.delete(f"/api/reports/{report_id}").status_code == 204
    assert client.get(f"/api/reports/{report_id}").status_code == 404

    assert client.put(f"/api/reports/{report_id}/restore").status_code == 403
    current_user.roles = ["ADMIN"]
    assert client.put(f"/api/reports/{report_id}/restore").status_code == 200
