from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from clinic_ledger.main import app
from clinic_ledger.api.deps import get_audit_sink
from clinic_ledger.core.database import Base, SessionLocal, engine, redis_client
from clinic_ledger.core.security import UserRole
from clinic_ledger.models import Clinic, ClinicMember, Patient, User

from .helpers import RecordingAuditSink, auth_headers, make_actor


@pytest.fixture(autouse=True)
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    redis_client.data.clear()
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed():
    """Two clinics with staff and one patient each.

    Runs in its own session, closed before the test body starts, so no
    SQLite write lock is held while the API or worker threads run.
    """
    session = SessionLocal()
    try:
        north = Clinic(name="North Clinic")
        south = Clinic(name="South Clinic")
        session.add_all([north, south])
        session.flush()

        def member(clinic, email, name, role):
            user = User(email=email, name=name, is_active=True)
            session.add(user)
            session.flush()
            session.add(ClinicMember(clinic_id=clinic.id, user_id=user.id, role=role, is_active=True))
            return user.id

        ids = SimpleNamespace(
            clinic=north.id,
            other_clinic=south.id,
            admin=member(north, "admin@north.test", "Ana Admin", UserRole.ADMIN),
            doctor=member(north, "house@north.test", "Greg House", UserRole.DOCTOR),
            second_doctor=member(north, "wilson@north.test", "James Wilson", UserRole.DOCTOR),
            receptionist=member(north, "desk@north.test", "Rita Desk", UserRole.RECEPTIONIST),
            nurse=member(north, "nurse@north.test", "Nina Nurse", UserRole.NURSE),
            other_admin=member(south, "admin@south.test", "Sam South", UserRole.ADMIN),
            other_doctor=member(south, "doc@south.test", "Dora South", UserRole.DOCTOR),
        )

        patient = Patient(clinic_id=north.id, first_name="Maria", last_name="Lopez")
        other_patient = Patient(clinic_id=south.id, first_name="Tom", last_name="Reed")
        session.add_all([patient, other_patient])
        session.flush()
        ids.patient = patient.id
        ids.other_patient = other_patient.id

        session.commit()
    finally:
        session.close()
    return ids


@pytest.fixture
def client():
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def audit_sink():
    sink = RecordingAuditSink()
    app.dependency_overrides[get_audit_sink] = lambda: sink
    return sink


@pytest.fixture
def admin_headers(seed):
    return auth_headers(seed.admin, seed.clinic)


@pytest.fixture
def desk_headers(seed):
    return auth_headers(seed.receptionist, seed.clinic)


@pytest.fixture
def doctor_headers(seed):
    return auth_headers(seed.doctor, seed.clinic)


@pytest.fixture
def admin(seed):
    return make_actor(seed.admin, seed.clinic, UserRole.ADMIN)
