from datetime import datetime

from pydantic import BaseModel, Field

from clinic_backend.models.appointment import Appointment
from clinic_backend.models.doctor_profile import DoctorProfile
from clinic_backend.scheduling.admission import availability_of, capacity_of


class AvailabilityWindowPayload(BaseModel):
    day: str
    start: str
    end: str


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    scheduled_at: datetime
    reason: str | None = None
    status: str
    created_at: datetime | None = None
    doctor_name: str | None = None
    patient_name: str | None = None

    class Config:
        from_attributes = True


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    scheduled_at: str = Field(alias='datetime')
    reason: str | None = None

    class Config:
        populate_by_name = True


class SlotsResponse(BaseModel):
    slots: list[str]


class MessageResponse(BaseModel):
    message: str


def availability_payload(profile: DoctorProfile | None) -> list[AvailabilityWindowPayload]:
    return [AvailabilityWindowPayload(**window.as_dict()) for window in availability_of(profile)]


def booking_settings(profile: DoctorProfile | None) -> dict:
    return {
        'specialty': profile.specialty if profile else None,
        'fee': profile.fee if profile else None,
        'availability': availability_payload(profile),
        'max_patients_per_day': capacity_of(profile),
    }


def appointment_response(
    appointment: Appointment,
    doctor_name: str | None = None,
    patient_name: str | None = None,
) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    response.doctor_name = doctor_name
    response.patient_name = patient_name
    return response
