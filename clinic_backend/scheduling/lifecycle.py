"""Status changes and removal of admitted appointments.

Each mutation targets one row and applies only if the row still has the status
it was read with. Moving a rejected appointment back to an active status makes
it occupy the doctor's day again, so it passes the same capacity and overlap
checks as a new booking.

Pending requests never expire on their own. Any time-based policy belongs in
``TRANSITIONS`` and ``set_status``.
"""

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core.errors import (
    AdmissionError,
    ConfirmedCannotCancel,
    Forbidden,
    InvalidInput,
    NotFound,
    SlotConflict,
)
from clinic_backend.models.appointment import (
    ACTIVE_STATUSES,
    APPOINTMENT_STATUSES,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Appointment,
)
from clinic_backend.scheduling.admission import doctor_booking_lock, ensure_admissible, lock_capacity
from clinic_backend.scheduling.slots import slot_key

logger = logging.getLogger(__name__)

TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_REJECTED},
    STATUS_CONFIRMED: {STATUS_PENDING, STATUS_REJECTED},
    STATUS_REJECTED: {STATUS_PENDING, STATUS_CONFIRMED},
}


def normalize_status(value: str | None) -> str:
    normalized = (value or '').strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise InvalidInput(f'Status must be one of: {", ".join(APPOINTMENT_STATUSES)}.')
    return normalized


def _get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def _get_doctor_appointment(db: Session, appointment_id: int, doctor_id: int) -> Appointment:
    appointment = _get_appointment(db, appointment_id)
    if appointment.doctor_id != doctor_id:
        raise Forbidden('Only the assigned doctor can manage this appointment.')
    return appointment


def _swap_status(db: Session, appointment: Appointment, current: str, new_status: str) -> None:
    values = {
        'status': new_status,
        'slot_key': slot_key(appointment.scheduled_at) if new_status in ACTIVE_STATUSES else None,
    }
    updated = db.query(Appointment).filter(
        Appointment.id == appointment.id,
        Appointment.status == current,
    ).update(values, synchronize_session=False)

    if updated == 0:
        raise NotFound('Appointment was changed or removed. Reload and try again.')


def set_status(db: Session, appointment_id: int, doctor_id: int, status: str) -> Appointment:
    new_status = normalize_status(status)
    appointment = _get_doctor_appointment(db, appointment_id, doctor_id)
    current = appointment.status

    if new_status == current:
        return appointment

    if new_status not in TRANSITIONS.get(current, set()):
        raise InvalidInput(f'Cannot change an appointment from {current} to {new_status}.')

    try:
        if current not in ACTIVE_STATUSES and new_status in ACTIVE_STATUSES:
            with doctor_booking_lock(doctor_id):
                capacity = lock_capacity(db, doctor_id)
                ensure_admissible(db, doctor_id, appointment.scheduled_at, capacity, exclude_id=appointment.id)
                _swap_status(db, appointment, current, new_status)
                db.commit()
        else:
            _swap_status(db, appointment, current, new_status)
            db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlotConflict() from exc
    except AdmissionError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info('Appointment %s moved from %s to %s by doctor %s', appointment.id, current, new_status, doctor_id)
    return appointment


def cancel_appointment(db: Session, appointment_id: int, patient_id: int) -> None:
    """Patient-side cancellation: deletes the request unless the doctor confirmed it."""
    appointment = _get_appointment(db, appointment_id)

    if appointment.patient_id != patient_id:
        raise Forbidden('Only the patient who booked this appointment can cancel it.')

    if appointment.status == STATUS_CONFIRMED:
        raise ConfirmedCannotCancel()

    deleted = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.patient_id == patient_id,
        Appointment.status != STATUS_CONFIRMED,
    ).delete(synchronize_session=False)

    if deleted == 0:
        db.rollback()
        db.expire_all()
        _get_appointment(db, appointment_id)
        raise ConfirmedCannotCancel()

    db.commit()
    logger.info('Appointment %s cancelled by patient %s', appointment_id, patient_id)


def remove_appointment(db: Session, appointment_id: int, doctor_id: int) -> None:
    """Doctor-side cleanup; removes the appointment whatever its status."""
    appointment = _get_doctor_appointment(db, appointment_id, doctor_id)
    db.delete(appointment)
    db.commit()
    logger.info('Appointment %s removed by doctor %s', appointment_id, doctor_id)


def purge_account_appointments(db: Session, user_id: int) -> int:
    """Delete every appointment where ``user_id`` is the patient or the doctor.

    Runs inside the caller's transaction so the account removal and this
    cascade commit together.
    """
    deleted = db.query(Appointment).filter(
        or_(Appointment.patient_id == user_id, Appointment.doctor_id == user_id),
    ).delete(synchronize_session=False)
    logger.info('Removed %s appointments of account %s', deleted, user_id)
    return deleted

