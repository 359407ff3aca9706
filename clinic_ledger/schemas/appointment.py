from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Optional

from ..models.appointment import AppointmentStatus
from .common import to_naive_utc


class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class AppointmentUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    doctor_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class AppointmentFilter(BaseModel):
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    patient_id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    total: int
    page: int
    pages: int


class CalendarEvent(BaseModel):
    """One appointment as a calendar entry."""
    id: int
    title: str
    start: datetime
    end: datetime
    status: AppointmentStatus
    patient_id: int
    patient_name: str
    doctor_id: int
    doctor_name: str
    reason: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment) -> "CalendarEvent":
        patient_name = appointment.patient.full_name
        doctor_name = appointment.doctor.name
        return cls(
            id=appointment.id,
            title=f"{patient_name} - Dr. {doctor_name}",
            start=appointment.start_time,
            end=appointment.end_time,
            status=appointment.status,
            patient_id=appointment.patient_id,
            patient_name=patient_name,
            doctor_id=appointment.doctor_id,
            doctor_name=doctor_name,
            reason=appointment.reason,
        )
