from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_role
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.doctor_profile import DoctorProfile
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT, User
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from clinic_backend.routes.schemas import (
    AppointmentResponse,
    AvailabilityWindowPayload,
    CreateAppointmentRequest,
    MessageResponse,
    SlotsResponse,
    appointment_response,
    booking_settings,
)
from clinic_backend.scheduling import admission, lifecycle

router = APIRouter(tags=['patient'])

patient_only = require_role(ROLE_PATIENT)


class DoctorSummaryResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    specialty: str | None = None
    fee: float | None = None
    availability: list[AvailabilityWindowPayload]
    max_patients_per_day: int


@router.get('/doctors', response_model=list[DoctorSummaryResponse])
def list_doctors(
    current_user: User = Depends(patient_only),
    db: Session = Depends(get_db),
):
    try:
        doctors = db.query(User).filter(User.role == ROLE_DOCTOR).order_by(User.name.asc()).all()
        profiles = db.query(DoctorProfile).filter(
            DoctorProfile.user_id.in_([doctor.id for doctor in doctors]),
        ).all()
        profile_by_user = {profile.user_id: profile for profile in profiles}

        return [
            DoctorSummaryResponse(
                id=doctor.id,
                name=doctor.name,
                email=doctor.email,
                **booking_settings(profile_by_user.get(doctor.id)),
            )
            for doctor in doctors
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/slots', response_model=SlotsResponse)
def list_available_slots(
    doctor_id: int = Query(...),
    date: str = Query(...),
    current_user: User = Depends(patient_only),
    db: Session = Depends(get_db),
):
    try:
        return SlotsResponse(slots=admission.available_slots(db, doctor_id, date))
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(patient_only),
    db: Session = Depends(get_db),
):
    try:
        rows = db.query(Appointment, User.name).join(User, User.id == Appointment.doctor_id).filter(
            Appointment.patient_id == current_user.id,
        ).order_by(Appointment.scheduled_at.asc()).all()

        return [appointment_response(appointment, doctor_name=doctor_name) for appointment, doctor_name in rows]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(patient_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = admission.request_booking(
            db,
            doctor_id=data.doctor_id,
            patient_id=current_user.id,
            when=data.scheduled_at,
            reason=data.reason,
        )
        return appointment_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/appointments/{appointment_id}', response_model=MessageResponse)
def cancel_my_appointment(
    appointment_id: int,
    current_user: User = Depends(patient_only),
    db: Session = Depends(get_db),
):
    try:
        lifecycle.cancel_appointment(db, appointment_id, patient_id=current_user.id)
        return MessageResponse(message='Appointment cancelled')
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
