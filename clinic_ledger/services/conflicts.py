"""
Appointment conflict detection.

Ranges are half-open: ``[start, end)``. Two ranges conflict iff
``s1 < e2 and s2 < e1``; any overlap counts, so back-to-back slots
(one ending exactly when the next starts) never conflict.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..core.errors import ConflictError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

# Statuses that no longer hold a doctor's time
NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED})


def validate_time_range(start: datetime, end: datetime) -> None:
    if start is None or end is None:
        raise ValidationError("Start and end time are required")
    if end <= start:
        raise ValidationError("End time must be after start time")


def ranges_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


class ConflictDetector:
    """Read-then-decide check; callers run it inside a per-doctor critical section."""

    def __init__(self, db: Session):
        self.db = db

    def find_conflict(
        self,
        clinic_id: int,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        validate_time_range(start, end)
        if not clinic_id or not doctor_id:
            raise ValidationError("Clinic and doctor are required")

        query = self.db.query(Appointment).filter(
            Appointment.clinic_id == clinic_id,
            Appointment.doctor_id == doctor_id,
            Appointment.status.notin_(NON_BLOCKING_STATUSES),
            # Narrow by index; the exact test is ranges_overlap below
            Appointment.start_time < end,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        for candidate in query.order_by(Appointment.start_time).all():
            if ranges_overlap(candidate.start_time, candidate.end_time, start, end):
                return candidate
        return None

    def has_conflict(
        self,
        clinic_id: int,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        return self.find_conflict(clinic_id, doctor_id, start, end, exclude_appointment_id) is not None

    def ensure_available(
        self,
        clinic_id: int,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        conflict = self.find_conflict(clinic_id, doctor_id, start, end, exclude_appointment_id)
        if conflict:
            logger.warning(
                f"Doctor {doctor_id} in clinic {clinic_id} is booked "
                f"{conflict.start_time}-{conflict.end_time} (appointment {conflict.id})"
            )
            raise ConflictError(
                f"Doctor already has an appointment from {conflict.start_time:%Y-%m-%d %H:%M} "
                f"to {conflict.end_time:%H:%M}",
                conflicting_id=conflict.id,
            )
