from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_role
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.availability import AvailabilityWindow as AvailabilityWindowRow
from clinic_backend.models.doctor_profile import DoctorProfile
from clinic_backend.models.user import ROLE_DOCTOR, User
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from clinic_backend.routes.schemas import (
    AppointmentResponse,
    AvailabilityWindowPayload,
    MessageResponse,
    appointment_response,
    booking_settings,
)
from clinic_backend.scheduling import lifecycle
from clinic_backend.scheduling.availability import AvailabilityWindow

router = APIRouter(tags=['doctor'])

doctor_only = require_role(ROLE_DOCTOR)


class DoctorProfileResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    role: str
    specialty: str | None = None
    fee: float | None = None
    availability: list[AvailabilityWindowPayload]
    max_patients_per_day: int


class UpdateDoctorProfileRequest(BaseModel):
    specialty: str | None = None
    fee: float | None = Field(default=None, ge=0)
    availability: list[AvailabilityWindowPayload] = Field(default_factory=list)
    max_patients_per_day: int | None = Field(default=None, ge=1)

    @field_validator('specialty')
    @classmethod
    def validate_specialty(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UpdateStatusRequest(BaseModel):
    status: str


def _profile_response(doctor: User, profile: DoctorProfile | None) -> DoctorProfileResponse:
    return DoctorProfileResponse(
        id=doctor.id,
        name=doctor.name,
        email=doctor.email,
        role=doctor.role,
        **booking_settings(profile),
    )


@router.get('/me', response_model=DoctorProfileResponse)
def get_my_profile(
    current_user: User = Depends(doctor_only),
    db: Session = Depends(get_db),
):
    try:
        profile = db.query(DoctorProfile).filter(DoctorProfile.user_id == current_user.id).first()
        return _profile_response(current_user, profile)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/me', response_model=DoctorProfileResponse)
def update_my_profile(
    data: UpdateDoctorProfileRequest,
    current_user: User = Depends(doctor_only),
    db: Session = Depends(get_db),
):
    # Windows are validated before anything is written; the list replaces the stored one.
    windows = [AvailabilityWindow.parse(item.day, item.start, item.end) for item in data.availability]

    try:
        profile = db.query(DoctorProfile).filter(DoctorProfile.user_id == current_user.id).first()
        if profile is None:
            profile = DoctorProfile(user_id=current_user.id)
            db.add(profile)

        profile.specialty = data.specialty
        profile.fee = data.fee
        if data.max_patients_per_day is not None:
            profile.max_patients_per_day = data.max_patients_per_day
        profile.availability_windows = [
            AvailabilityWindowRow(
                position=position,
                day=window.day,
                start_minute=window.start.minutes,
                end_minute=window.end.minutes,
            )
            for position, window in enumerate(windows)
        ]

        db.commit()
        db.refresh(profile)
        return _profile_response(current_user, profile)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(doctor_only),
    db: Session = Depends(get_db),
):
    try:
        rows = db.query(Appointment, User.name).join(User, User.id == Appointment.patient_id).filter(
            Appointment.doctor_id == current_user.id,
        ).order_by(Appointment.scheduled_at.asc()).all()

        return [appointment_response(appointment, patient_name=patient_name) for appointment, patient_name in rows]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def set_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    current_user: User = Depends(doctor_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = lifecycle.set_status(db, appointment_id, doctor_id=current_user.id, status=data.status)
        return appointment_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/appointments/{appointment_id}', response_model=MessageResponse)
def remove_appointment(
    appointment_id: int,
    current_user: User = Depends(doctor_only),
    db: Session = Depends(get_db),
):
    try:
        lifecycle.remove_appointment(db, appointment_id, doctor_id=current_user.id)
        return MessageResponse(message='Appointment removed')
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
