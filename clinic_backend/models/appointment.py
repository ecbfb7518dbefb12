"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from clinic_backend.database import Base


STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_REJECTED = 'rejected'

APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_REJECTED)
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)


class Appointment(Base):
    """Represents a patient's request for a doctor's time.

    ``slot_key`` is the start floored to the slot grid while the appointment
    occupies the doctor's day and NULL once rejected, so the unique index only
    ever sees non-terminal appointments.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("doctor_id", "slot_key", name="uq_appointments_doctor_slot"),
        Index("idx_appointments_doctor_time", "doctor_id", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False)
    reason = Column(String)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    slot_key = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
