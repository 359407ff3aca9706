import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from ..core.cache import ReadThroughCache, appointment_key
from ..core.database import transaction
from ..core.errors import ValidationError
from ..core.locking import serialize_on
from ..core.security import Actor
from ..models.appointment import Appointment, AppointmentStatus
from ..models.audit_log import AuditAction
from ..schemas.appointment import (
    AppointmentCreate, AppointmentFilter, AppointmentResponse, AppointmentUpdate
)
from .audit import AuditSink, NullAuditSink
from .conflicts import ConflictDetector, validate_time_range
from .lifecycle import AppointmentLifecycle
from .pagination import normalize_page, page_count
from .tenant import TenantScopeGuard

logger = logging.getLogger(__name__)

DOCTOR_SCHEDULE_LOCK = "doctor-schedule"


class AppointmentService:
    def __init__(self, db: Session, audit: AuditSink = None, cache: ReadThroughCache = None):
        self.db = db
        self.audit = audit or NullAuditSink()
        self.cache = cache or ReadThroughCache(enabled=False)
        self.guard = TenantScopeGuard(db)
        self.conflicts = ConflictDetector(db)
        self.lifecycle = AppointmentLifecycle()

    def create_appointment(self, actor: Actor, data: AppointmentCreate) -> Appointment:
        """Book a slot; refused with ConflictError if the doctor is busy."""
        validate_time_range(data.start_time, data.end_time)

        with transaction(self.db):
            self.guard.require_patient(actor.clinic_id, data.patient_id)
            self.guard.require_doctor(actor.clinic_id, data.doctor_id)

            serialize_on(self.db, DOCTOR_SCHEDULE_LOCK, actor.clinic_id, data.doctor_id)
            self.conflicts.ensure_available(
                actor.clinic_id, data.doctor_id, data.start_time, data.end_time
            )

            appointment = Appointment(
                clinic_id=actor.clinic_id,
                patient_id=data.patient_id,
                doctor_id=data.doctor_id,
                start_time=data.start_time,
                end_time=data.end_time,
                status=AppointmentStatus.SCHEDULED,
                reason=data.reason,
                notes=data.notes,
            )
            self.db.add(appointment)
            self.db.flush()
            appointment_id = appointment.id

        logger.info(
            f"Appointment {appointment_id} booked for doctor {data.doctor_id} "
            f"{data.start_time}-{data.end_time} in clinic {actor.clinic_id}"
        )
        self.audit.record(actor, AuditAction.CREATE, "Appointment", appointment_id)
        return appointment

    def get_appointment(self, actor: Actor, appointment_id: int) -> Appointment:
        return self.guard.require_appointment(actor.clinic_id, appointment_id)

    def read_appointment(self, actor: Actor, appointment_id: int) -> dict:
        """Serialized view of one appointment, served from cache when possible."""
        def load():
            appointment = self.get_appointment(actor, appointment_id)
            return AppointmentResponse.model_validate(appointment).model_dump(mode="json")

        return self.cache.read_through(appointment_key(actor.clinic_id, appointment_id), load)

    def list_appointments(
        self, actor: Actor, filters: AppointmentFilter, page: int = 1, limit: int = None
    ) -> Tuple[List[Appointment], int, int, int]:
        page, limit = normalize_page(page, limit)
        query = self.db.query(Appointment).filter(Appointment.clinic_id == actor.clinic_id)

        if filters.doctor_id is not None:
            query = query.filter(Appointment.doctor_id == filters.doctor_id)
        if filters.patient_id is not None:
            query = query.filter(Appointment.patient_id == filters.patient_id)
        if filters.status is not None:
            query = query.filter(Appointment.status == filters.status)
        if filters.start_date is not None:
            query = query.filter(Appointment.start_time >= filters.start_date)
        if filters.end_date is not None:
            query = query.filter(Appointment.start_time < filters.end_date)

        total = query.count()
        appointments = (
            query.order_by(Appointment.start_time, Appointment.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return appointments, total, page, page_count(total, limit)

    def calendar(
        self, actor: Actor, start: datetime, end: datetime, doctor_id: Optional[int] = None
    ) -> List[Appointment]:
        """Appointments of any status that overlap the half-open window [start, end).

        Same predicate as ``ranges_overlap``, so an appointment running into
        the window from before it is included and one ending at ``start`` is not.
        """
        validate_time_range(start, end)
        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
            .filter(
                Appointment.clinic_id == actor.clinic_id,
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
        )
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return query.order_by(Appointment.start_time, Appointment.id).all()

    def update_appointment(self, actor: Actor, appointment_id: int, data: AppointmentUpdate) -> Appointment:
        """Reschedule, reassign, edit text, or apply a staff status change."""
        changes = data.model_dump(exclude_unset=True)
        for field in ("doctor_id", "start_time", "end_time", "status"):
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be null")

        with transaction(self.db):
            appointment = self.guard.require_appointment(
                actor.clinic_id, appointment_id, for_update=True
            )

            new_start = changes.get("start_time", appointment.start_time)
            new_end = changes.get("end_time", appointment.end_time)
            new_doctor = changes.get("doctor_id", appointment.doctor_id)
            validate_time_range(new_start, new_end)

            reschedule = (
                new_start != appointment.start_time
                or new_end != appointment.end_time
                or new_doctor != appointment.doctor_id
            )
            if reschedule:
                self.lifecycle.ensure_schedule_editable(appointment)
                if new_doctor != appointment.doctor_id:
                    self.guard.require_doctor(actor.clinic_id, new_doctor)

                serialize_on(self.db, DOCTOR_SCHEDULE_LOCK, actor.clinic_id, new_doctor)
                self.conflicts.ensure_available(
                    actor.clinic_id, new_doctor, new_start, new_end,
                    exclude_appointment_id=appointment.id,
                )
                appointment.start_time = new_start
                appointment.end_time = new_end
                appointment.doctor_id = new_doctor

            if "status" in changes:
                self.lifecycle.staff_transition(appointment, changes["status"])
            if "reason" in changes:
                appointment.reason = changes["reason"]
            if "notes" in changes:
                appointment.notes = changes["notes"]

            self.db.flush()

        self.cache.invalidate(appointment_key(actor.clinic_id, appointment_id))
        self.audit.record(actor, AuditAction.UPDATE, "Appointment", appointment_id)
        return appointment

    def cancel_appointment(self, actor: Actor, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        """Cancel without deleting; cancelling twice is a no-op."""
        with transaction(self.db):
            appointment = self.guard.require_appointment(
                actor.clinic_id, appointment_id, for_update=True
            )
            changed = self.lifecycle.staff_transition(appointment, AppointmentStatus.CANCELLED)
            if changed and reason:
                appointment.cancelled_reason = reason
            self.db.flush()

        if changed:
            self.cache.invalidate(appointment_key(actor.clinic_id, appointment_id))
            self.audit.record(actor, AuditAction.UPDATE, "Appointment", appointment_id, "cancelled")
        return appointment
