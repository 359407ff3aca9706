import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.cache import ReadThroughCache, appointment_key
from ..core.database import transaction
from ..core.errors import InvalidStateError, ValidationError
from ..core.security import Actor
from ..models.audit_log import AuditAction
from ..models.clinical_note import ClinicalNote
from ..schemas.clinical_note import ClinicalNoteCreate
from .audit import AuditSink, NullAuditSink
from .lifecycle import AppointmentLifecycle
from .tenant import TenantScopeGuard

logger = logging.getLogger(__name__)


class ClinicalNoteService:
    """Note workflow; opening and finalizing a note drive the linked appointment."""

    def __init__(self, db: Session, audit: AuditSink = None, cache: ReadThroughCache = None):
        self.db = db
        self.audit = audit or NullAuditSink()
        self.cache = cache or ReadThroughCache(enabled=False)
        self.guard = TenantScopeGuard(db)
        self.lifecycle = AppointmentLifecycle()

    def open_note(self, actor: Actor, data: ClinicalNoteCreate) -> ClinicalNote:
        with transaction(self.db):
            self.guard.require_patient(actor.clinic_id, data.patient_id)

            if data.appointment_id is not None:
                appointment = self.guard.require_appointment(
                    actor.clinic_id, data.appointment_id, for_update=True
                )
                if appointment.patient_id != data.patient_id:
                    raise ValidationError("Appointment belongs to a different patient")
                if appointment.clinical_note is not None:
                    raise InvalidStateError("Appointment already has a clinical note")
                self.lifecycle.on_note_opened(appointment)

            note = ClinicalNote(
                clinic_id=actor.clinic_id,
                patient_id=data.patient_id,
                appointment_id=data.appointment_id,
                doctor_id=actor.user_id,
                chief_complaint=data.chief_complaint,
                diagnosis=data.diagnosis,
                treatment=data.treatment,
                notes=data.notes,
                is_finalized=False,
            )
            self.db.add(note)
            self.db.flush()
            note_id = note.id

        logger.info(f"Clinical note {note_id} opened by user {actor.user_id}")
        if data.appointment_id is not None:
            self.cache.invalidate(appointment_key(actor.clinic_id, data.appointment_id))
        self.audit.record(actor, AuditAction.CREATE, "ClinicalNote", note_id)
        return note

    def get_note(self, actor: Actor, note_id: int) -> ClinicalNote:
        return self.guard.require_note(actor.clinic_id, note_id)

    def finalize_note(self, actor: Actor, note_id: int) -> ClinicalNote:
        """Finalize once; repeating it changes nothing."""
        with transaction(self.db):
            note = self.guard.require_note(actor.clinic_id, note_id)
            if note.is_finalized:
                return note

            note.is_finalized = True
            note.finalized_at = datetime.utcnow()
            appointment_id = note.appointment_id
            if appointment_id is not None:
                appointment = self.guard.require_appointment(
                    actor.clinic_id, appointment_id, for_update=True
                )
                self.lifecycle.on_note_finalized(appointment)
            self.db.flush()

        logger.info(f"Clinical note {note_id} finalized by user {actor.user_id}")
        if appointment_id is not None:
            self.cache.invalidate(appointment_key(actor.clinic_id, appointment_id))
        self.audit.record(actor, AuditAction.UPDATE, "ClinicalNote", note_id, "finalized")
        return note
