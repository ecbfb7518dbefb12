from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from threading import Barrier

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic_backend.core import config
from clinic_backend.core.errors import AdmissionError, DayFullyBooked, SlotConflict
from clinic_backend.database import Base
from clinic_backend.models.appointment import ACTIVE_STATUSES, Appointment
from clinic_backend.scheduling.admission import request_booking


@pytest.fixture
def file_session_factory(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'BOOKING_LOCK_TIMEOUT_SECONDS', 30)
    engine = create_engine(
        f'sqlite:///{tmp_path / "booking.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def _book_concurrently(session_factory, doctor_id: int, patient_id: int, requested: list[datetime]) -> list:
    barrier = Barrier(len(requested))

    def attempt(when: datetime):
        db = session_factory()
        try:
            barrier.wait()
            return request_booking(db, doctor_id, patient_id, when).scheduled_at
        except AdmissionError as exc:
            return exc
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(requested)) as pool:
        return list(pool.map(attempt, requested))


def _active_times(session_factory, doctor_id: int) -> list[datetime]:
    db = session_factory()
    try:
        rows = db.query(Appointment.scheduled_at).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).order_by(Appointment.scheduled_at.asc()).all()
        return [scheduled_at for (scheduled_at,) in rows]
    finally:
        db.close()


def test_concurrent_bookings_never_exceed_daily_capacity(file_session_factory, seeders) -> None:
    setup = file_session_factory()
    doctor = seeders.doctor(setup, windows=[('Mon', '09:00', '13:00')], capacity=3)
    patient = seeders.patient(setup)
    doctor_id, patient_id = doctor.id, patient.id
    setup.close()

    requested = [datetime(2026, 1, 5, 9, 0) + timedelta(minutes=30 * step) for step in range(8)]
    results = _book_concurrently(file_session_factory, doctor_id, patient_id, requested)

    admitted = [result for result in results if isinstance(result, datetime)]
    rejected = [result for result in results if not isinstance(result, datetime)]

    assert len(admitted) == 3
    assert all(isinstance(error, DayFullyBooked) for error in rejected)
    assert _active_times(file_session_factory, doctor_id) == sorted(admitted)


def test_concurrent_bookings_for_the_same_time_admit_one(file_session_factory, seeders) -> None:
    setup = file_session_factory()
    doctor = seeders.doctor(setup, windows=[('Mon', '09:00', '13:00')], capacity=20)
    patient = seeders.patient(setup)
    doctor_id, patient_id = doctor.id, patient.id
    setup.close()

    requested = [datetime(2026, 1, 5, 10, 0), datetime(2026, 1, 5, 10, 15)] * 3
    results = _book_concurrently(file_session_factory, doctor_id, patient_id, requested)

    admitted = [result for result in results if isinstance(result, datetime)]
    rejected = [result for result in results if not isinstance(result, datetime)]

    assert len(admitted) == 1
    assert len(rejected) == 5
    assert all(isinstance(error, SlotConflict) for error in rejected)

    active = _active_times(file_session_factory, doctor_id)
    assert active == admitted
