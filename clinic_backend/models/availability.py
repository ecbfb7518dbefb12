"""Availability model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from clinic_backend.database import Base


class AvailabilityWindow(Base):
    """One recurring weekly opening of a doctor, stored as minutes since midnight."""
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True)
    doctor_profile_id = Column(
        Integer,
        ForeignKey("doctor_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    day = Column(String(3), nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
