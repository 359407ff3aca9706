from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...core.permissions import Operation
from ...core.security import Actor
from ...models.appointment import AppointmentStatus
from ...schemas.appointment import (
    AppointmentCancel, AppointmentCreate, AppointmentFilter,
    AppointmentListResponse, AppointmentResponse, AppointmentUpdate, CalendarEvent
)
from ...schemas.common import to_naive_utc
from ...services.appointment_service import AppointmentService
from ..deps import get_appointment_service, require_permission

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(require_permission(Operation.CREATE_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment; 409 if the doctor already has an overlapping one."""
    appointment = service.create_appointment(actor, data)
    return AppointmentResponse.model_validate(appointment)

@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    status: Optional[AppointmentStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(require_permission(Operation.READ_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List the clinic's appointments, earliest first."""
    filters = AppointmentFilter(
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    appointments, total, page, pages = service.list_appointments(actor, filters, page, limit)
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        total=total,
        page=page,
        pages=pages,
    )

@router.get("/calendar", response_model=List[CalendarEvent])
async def appointment_calendar(
    start: datetime,
    end: datetime,
    doctor_id: Optional[int] = None,
    actor: Actor = Depends(require_permission(Operation.READ_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments overlapping [start, end), for a calendar view."""
    appointments = service.calendar(actor, to_naive_utc(start), to_naive_utc(end), doctor_id)
    return [CalendarEvent.from_appointment(a) for a in appointments]

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(require_permission(Operation.READ_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.read_appointment(actor, appointment_id)

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    actor: Actor = Depends(require_permission(Operation.UPDATE_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reschedule or change status. Time edits only while scheduled/confirmed."""
    appointment = service.update_appointment(actor, appointment_id, data)
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    actor: Actor = Depends(require_permission(Operation.CANCEL_APPOINTMENT)),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.cancel_appointment(
        actor, appointment_id, data.reason if data else None
    )
    return AppointmentResponse.model_validate(appointment)
