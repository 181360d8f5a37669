import os
import tempfile
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'mydoc-pytest.db'}"
)
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("ADMIN_PASSWORD", "studio-test-password")
os.environ.setdefault("DISPLAY_TIMEZONE", "Europe/Rome")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from mydoc.db.session import build_engine, get_db
from mydoc.deps import get_clock
from mydoc.main import app
from mydoc.models import Appointment, Base, DoctorSlot, Patient, Request, RequestStatus, Urgency

NOW = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)


class Seed:
    """Inserts rows directly and returns their ids without leaving a transaction open."""

    def __init__(self, session):
        self.session = session
        self._phones = 0

    def _store(self, row) -> str:
        self.session.add(row)
        self.session.flush()
        row_id = row.id
        self.session.commit()
        return row_id

    def patient(self, nome="Mario", cognome="Rossi", telefono=None) -> str:
        self._phones += 1
        return self._store(
            Patient(
                nome=nome,
                cognome=cognome,
                telefono=telefono or f"333000{self._phones:04d}",
            )
        )

    def request(
        self,
        patient_id=None,
        *,
        urgenza=Urgency.media,
        motivo="Controllo",
        desired_date=None,
        created_at=None,
    ) -> str:
        row = Request(
            patient_id=patient_id or self.patient(),
            motivo=motivo,
            urgenza=urgenza,
            stato=RequestStatus.waiting,
            desired_date=desired_date,
        )
        if created_at is not None:
            row.created_at = created_at
        return self._store(row)

    def slot(self, start: datetime, minutes: int = 30) -> str:
        return self._store(
            DoctorSlot(
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
                duration_minutes=minutes,
                is_available=True,
            )
        )


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'mydoc.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed(db):
    return Seed(db)


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr("time.sleep", lambda seconds: delays.append(seconds))
    return delays


@pytest.fixture()
def assert_booking_state(db):
    """Recompute slot availability and request state from the appointment rows."""

    def _check():
        db.rollback()
        booked_slots = Counter(db.scalars(select(Appointment.slot_id)))
        booked_requests = Counter(db.scalars(select(Appointment.request_id)))
        assert all(count == 1 for count in booked_slots.values())
        assert all(count == 1 for count in booked_requests.values())
        for slot_id, is_available in db.execute(select(DoctorSlot.id, DoctorSlot.is_available)):
            assert is_available == (slot_id not in booked_slots), slot_id
        for request_id, stato in db.execute(select(Request.id, Request.stato)):
            assert (stato == RequestStatus.scheduled) == (request_id in booked_requests), request_id
        db.rollback()

    return _check


@pytest.fixture()
def api_client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(api_client):
    response = api_client.post("/auth/login", json={"password": os.environ["ADMIN_PASSWORD"]})
    assert response.status_code == 200, response.text
    token = response.json().get("access_token")
    assert token, "Missing access_token in login response"
    return {"Authorization": f"Bearer {token}"}
