from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from clinic_backend.models.appointment import ACTIVE_STATUSES, Appointment
from clinic_backend.scheduling.availability import ClockTime
from clinic_backend.scheduling.slots import OVERLAP_WINDOW, SLOT_MINUTES


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(target_date, time(0, 0))
    return day_start, day_start + timedelta(days=1)


@dataclass
class Occupancy:
    booked_times: set[ClockTime] = field(default_factory=set)
    count_for_day: int = 0

    def conflicts_with(self, clock: ClockTime) -> bool:
        """True when a booked start is strictly closer than the overlap window to ``clock``."""
        return any(abs(booked.minutes - clock.minutes) < SLOT_MINUTES for booked in self.booked_times)


def active_appointments_query(db: Session, doctor_id: int):
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.status.in_(ACTIVE_STATUSES),
    )


def occupied_slots(db: Session, doctor_id: int, target_date: date) -> Occupancy:
    day_start, day_end = day_bounds(target_date)
    rows = db.query(Appointment.scheduled_at).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.scheduled_at >= day_start,
        Appointment.scheduled_at < day_end,
    ).all()

    return Occupancy(
        booked_times={ClockTime.from_time(scheduled_at) for (scheduled_at,) in rows},
        count_for_day=len(rows),
    )


def count_active_for_day(db: Session, doctor_id: int, target_date: date, exclude_id: int | None = None) -> int:
    day_start, day_end = day_bounds(target_date)
    query = active_appointments_query(db, doctor_id).filter(
        Appointment.scheduled_at >= day_start,
        Appointment.scheduled_at < day_end,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.count()


def find_overlapping(
    db: Session,
    doctor_id: int,
    moment: datetime,
    exclude_id: int | None = None,
) -> Appointment | None:
    # Open interval: bookings exactly one slot apart do not conflict.
    query = active_appointments_query(db, doctor_id).filter(
        Appointment.scheduled_at > moment - OVERLAP_WINDOW,
        Appointment.scheduled_at < moment + OVERLAP_WINDOW,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()
