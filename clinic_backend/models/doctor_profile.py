"""Doctor profile model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from clinic_backend.core import config
from clinic_backend.database import Base
from clinic_backend.models.availability import AvailabilityWindow


class DoctorProfile(Base):
    """Booking settings of a doctor account, keyed by the account id."""
    __tablename__ = "doctor_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialty = Column(String)
    fee = Column(Float)
    max_patients_per_day = Column(Integer, nullable=False, default=config.DEFAULT_MAX_PATIENTS_PER_DAY)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    availability_windows = relationship(
        AvailabilityWindow,
        order_by=AvailabilityWindow.position,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
