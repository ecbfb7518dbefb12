import os
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from clinic_backend.database import Base  # noqa: E402
from clinic_backend.models.appointment import Appointment  # noqa: E402
from clinic_backend.models.availability import AvailabilityWindow  # noqa: E402
from clinic_backend.models.doctor_profile import DoctorProfile  # noqa: E402
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402
from clinic_backend.scheduling.availability import ClockTime  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


def seed_doctor(db, windows=(), capacity=20, name='Dr. Meredith Grey') -> User:
    doctor = User(name=name, email=f'{uuid4().hex}@clinic.test', role=ROLE_DOCTOR)
    db.add(doctor)
    db.flush()

    profile = DoctorProfile(
        user_id=doctor.id,
        specialty='General practice',
        max_patients_per_day=capacity,
        availability_windows=[
            AvailabilityWindow(
                position=position,
                day=day,
                start_minute=ClockTime.parse(start).minutes,
                end_minute=ClockTime.parse(end).minutes,
            )
            for position, (day, start, end) in enumerate(windows)
        ],
    )
    db.add(profile)
    db.commit()
    db.refresh(doctor)
    return doctor


def seed_patient(db, name='Pat Patient') -> User:
    patient = User(name=name, email=f'{uuid4().hex}@patient.test', role=ROLE_PATIENT)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


@pytest.fixture
def make_doctor(db):
    def _make(windows=(), capacity=20, name='Dr. Meredith Grey') -> User:
        return seed_doctor(db, windows=windows, capacity=capacity, name=name)

    return _make


@pytest.fixture
def make_patient(db):
    def _make(name='Pat Patient') -> User:
        return seed_patient(db, name=name)

    return _make


@pytest.fixture
def add_appointment(db):
    def _add(doctor, patient, scheduled_at, status='pending') -> Appointment:
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            scheduled_at=scheduled_at,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add


@pytest.fixture
def seeders():
    return SimpleNamespace(doctor=seed_doctor, patient=seed_patient)
