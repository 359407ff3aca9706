from .user import User
from .clinic import Clinic, ClinicMember, ClinicCounter
from .patient import Patient
from .appointment import Appointment, AppointmentStatus
from .clinical_note import ClinicalNote
from .invoice import Invoice, InvoiceItem, InvoiceStatus, Payment, PaymentMethod
from .audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "Clinic",
    "ClinicMember",
    "ClinicCounter",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "ClinicalNote",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "AuditLog",
    "AuditAction",
]
