"""Booking admission: decides whether a requested doctor/time becomes an appointment.

The capacity check, the overlap check and the insert run as one unit per
doctor. Inside one process a per-doctor lock with a bounded wait serializes
them; across processes the doctor's profile row is locked ``FOR UPDATE``; and
the unique ``(doctor_id, slot_key)`` index rejects whatever still slips
through, which is reported as a slot conflict.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from threading import Lock

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.core.errors import (
    AdmissionError,
    DayFullyBooked,
    InvalidInput,
    NotFound,
    OutsideAvailability,
    SlotConflict,
)
from clinic_backend.models.appointment import STATUS_PENDING, Appointment
from clinic_backend.models.doctor_profile import DoctorProfile
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT, User
from clinic_backend.scheduling.availability import WeeklyAvailability
from clinic_backend.scheduling.occupancy import count_active_for_day, find_overlapping, occupied_slots
from clinic_backend.scheduling.slots import generate_slots, slot_key

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 600

_registry_lock = Lock()
_doctor_locks: dict[int, Lock] = {}


def _lock_for(doctor_id: int) -> Lock:
    with _registry_lock:
        return _doctor_locks.setdefault(doctor_id, Lock())


@contextmanager
def doctor_booking_lock(doctor_id: int, timeout: float | None = None):
    wait_seconds = config.BOOKING_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    lock = _lock_for(doctor_id)

    if not lock.acquire(timeout=wait_seconds):
        logger.warning('Booking lock for doctor %s not acquired within %.1fs', doctor_id, wait_seconds)
        raise SlotConflict('Another booking for this doctor is in progress. Please try again.')

    try:
        yield
    finally:
        lock.release()


def parse_requested_datetime(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidInput('Invalid datetime.') from exc
    else:
        raise InvalidInput('doctorId and datetime are required.')

    if parsed.tzinfo is not None:
        # Single wall clock: convert to server-local time and drop the offset.
        parsed = parsed.astimezone().replace(tzinfo=None)

    return parsed.replace(second=0, microsecond=0)


def parse_requested_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidInput('Invalid date, expected YYYY-MM-DD.') from exc
    raise InvalidInput('doctorId and date are required.')


def normalize_reason(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_REASON_LENGTH:
        raise InvalidInput(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')

    return normalized


def load_doctor(db: Session, doctor_id: int) -> tuple[User, DoctorProfile | None]:
    doctor = db.query(User).filter(User.id == doctor_id).first()
    if doctor is None or doctor.role != ROLE_DOCTOR:
        raise NotFound('Doctor not found.')

    profile = db.query(DoctorProfile).filter(DoctorProfile.user_id == doctor_id).first()
    return doctor, profile


def availability_of(profile: DoctorProfile | None) -> WeeklyAvailability:
    if profile is None:
        return WeeklyAvailability()
    return WeeklyAvailability.from_rows(profile.availability_windows)


def capacity_of(profile: DoctorProfile | None) -> int:
    if profile is None or profile.max_patients_per_day is None:
        return config.DEFAULT_MAX_PATIENTS_PER_DAY
    return profile.max_patients_per_day


def lock_capacity(db: Session, doctor_id: int) -> int:
    """Lock the doctor's profile row for the rest of the transaction and read its cap."""
    profile = (
        db.query(DoctorProfile)
        .filter(DoctorProfile.user_id == doctor_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    return capacity_of(profile)


def ensure_admissible(
    db: Session,
    doctor_id: int,
    scheduled_at: datetime,
    capacity: int,
    exclude_id: int | None = None,
) -> None:
    count_for_day = count_active_for_day(db, doctor_id, scheduled_at.date(), exclude_id=exclude_id)
    if count_for_day >= capacity:
        raise DayFullyBooked()

    if find_overlapping(db, doctor_id, scheduled_at, exclude_id=exclude_id) is not None:
        raise SlotConflict()


def request_booking(
    db: Session,
    doctor_id: int,
    patient_id: int,
    when,
    reason: str | None = None,
) -> Appointment:
    scheduled_at = parse_requested_datetime(when)
    normalized_reason = normalize_reason(reason)

    _, profile = load_doctor(db, doctor_id)

    patient = db.query(User).filter(User.id == patient_id).first()
    if patient is None or patient.role != ROLE_PATIENT:
        raise NotFound('Patient not found.')

    if not availability_of(profile).is_available(scheduled_at):
        raise OutsideAvailability()

    with doctor_booking_lock(doctor_id):
        try:
            capacity = lock_capacity(db, doctor_id)
            ensure_admissible(db, doctor_id, scheduled_at, capacity)

            appointment = Appointment(
                doctor_id=doctor_id,
                patient_id=patient_id,
                scheduled_at=scheduled_at,
                reason=normalized_reason,
                status=STATUS_PENDING,
                slot_key=slot_key(scheduled_at),
            )
            db.add(appointment)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(
                'Concurrent booking for doctor %s at %s rejected by slot index',
                doctor_id,
                scheduled_at.isoformat(),
            )
            raise SlotConflict() from exc
        except AdmissionError:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(
        'Appointment %s requested by patient %s with doctor %s at %s',
        appointment.id,
        patient_id,
        doctor_id,
        scheduled_at.isoformat(),
    )
    return appointment


def available_slots(
    db: Session,
    doctor_id: int,
    target_date,
    now: datetime | None = None,
) -> list[str]:
    """Free ``HH:MM`` starts of a doctor's day, earliest first, capped by remaining capacity.

    Advisory only: nothing is reserved, and admission re-validates the chosen time.
    """
    target_date = parse_requested_date(target_date)
    _, profile = load_doctor(db, doctor_id)
    availability = availability_of(profile)
    if not availability:
        return []

    occupancy = occupied_slots(db, doctor_id, target_date)
    remaining = capacity_of(profile) - occupancy.count_for_day
    if remaining <= 0:
        return []

    free = [
        str(slot)
        for slot in generate_slots(availability, target_date, now)
        if not occupancy.conflicts_with(slot)
    ]
    return free[:remaining]
