"""
Tenant scope guard.

Resolves the acting user's clinic and role, and loads clinic-owned
entities. An entity that belongs to another clinic is reported exactly
like a missing one so callers cannot discover cross-tenant ids.
"""
import logging

from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..core.security import Actor, AuthenticationError, TokenPayload, UserRole
from ..models.appointment import Appointment
from ..models.clinic import ClinicMember
from ..models.clinical_note import ClinicalNote
from ..models.invoice import Invoice
from ..models.patient import Patient
from ..models.user import User

logger = logging.getLogger(__name__)


class TenantScopeGuard:
    def __init__(self, db: Session):
        self.db = db

    def resolve_actor(self, token_payload: TokenPayload) -> Actor:
        """Turn verified token claims into a clinic-scoped actor."""
        if not token_payload.sub or not token_payload.clinic_id:
            raise AuthenticationError("Invalid token payload")

        membership = (
            self.db.query(ClinicMember)
            .join(User, User.id == ClinicMember.user_id)
            .filter(
                ClinicMember.user_id == token_payload.sub,
                ClinicMember.clinic_id == token_payload.clinic_id,
                ClinicMember.is_active.is_(True),
                User.is_active.is_(True),
            )
            .first()
        )
        if not membership:
            logger.warning(
                f"User {token_payload.sub} has no active membership in clinic {token_payload.clinic_id}"
            )
            raise AuthenticationError("No active clinic membership")

        return Actor(
            user_id=membership.user_id,
            clinic_id=membership.clinic_id,
            role=membership.role,
        )

    def require_patient(self, clinic_id: int, patient_id: int) -> Patient:
        patient = (
            self.db.query(Patient)
            .filter(
                Patient.id == patient_id,
                Patient.clinic_id == clinic_id,
                Patient.deleted_at.is_(None),
            )
            .first()
        )
        if not patient:
            raise NotFoundError("Patient")
        return patient

    def require_doctor(self, clinic_id: int, doctor_id: int) -> User:
        """A doctor is an active clinic member holding the DOCTOR role."""
        doctor = (
            self.db.query(User)
            .join(ClinicMember, ClinicMember.user_id == User.id)
            .filter(
                User.id == doctor_id,
                User.is_active.is_(True),
                ClinicMember.clinic_id == clinic_id,
                ClinicMember.role == UserRole.DOCTOR,
                ClinicMember.is_active.is_(True),
            )
            .first()
        )
        if not doctor:
            raise NotFoundError("Doctor")
        return doctor

    def require_appointment(self, clinic_id: int, appointment_id: int, for_update: bool = False) -> Appointment:
        query = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.clinic_id == clinic_id,
        )
        if for_update:
            query = query.with_for_update()
        appointment = query.first()
        if not appointment:
            raise NotFoundError("Appointment")
        return appointment

    def require_invoice(self, clinic_id: int, invoice_id: int, for_update: bool = False) -> Invoice:
        query = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.clinic_id == clinic_id,
        )
        if for_update:
            query = query.with_for_update()
        invoice = query.first()
        if not invoice:
            raise NotFoundError("Invoice")
        return invoice

    def require_note(self, clinic_id: int, note_id: int) -> ClinicalNote:
        note = (
            self.db.query(ClinicalNote)
            .filter(ClinicalNote.id == note_id, ClinicalNote.clinic_id == clinic_id)
            .first()
        )
        if not note:
            raise NotFoundError("Clinical note")
        return note
