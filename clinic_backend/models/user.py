"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from clinic_backend.database import Base


ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'


class User(Base):
    """Represents an application account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default='')
    email = Column(String, unique=True, index=True)
    role = Column(String, nullable=False)  # patient/doctor/admin
    created_at = Column(DateTime, default=datetime.now)
