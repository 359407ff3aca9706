"""Declarative authorization policy.

One table, keyed by operation, lists the roles allowed to run it. The
API layer consults it through ``require_permission`` before any service
code runs; services never inspect roles themselves.
"""
from enum import Enum
from typing import Dict, FrozenSet

from .security import UserRole


class Operation(str, Enum):
    READ_APPOINTMENT = "appointment:read"
    CREATE_APPOINTMENT = "appointment:create"
    UPDATE_APPOINTMENT = "appointment:update"
    CANCEL_APPOINTMENT = "appointment:cancel"
    OPEN_NOTE = "note:open"
    FINALIZE_NOTE = "note:finalize"
    READ_INVOICE = "invoice:read"
    CREATE_INVOICE = "invoice:create"
    UPDATE_INVOICE = "invoice:update"
    DELETE_INVOICE = "invoice:delete"
    APPLY_PAYMENT = "payment:apply"
    READ_AUDIT = "audit:read"


_STAFF = frozenset(UserRole)
_CLINICIANS = frozenset({UserRole.ADMIN, UserRole.DOCTOR})
_BILLING = frozenset({UserRole.ADMIN, UserRole.RECEPTIONIST})

POLICY: Dict[Operation, FrozenSet[UserRole]] = {
    Operation.READ_APPOINTMENT: _STAFF,
    Operation.CREATE_APPOINTMENT: _STAFF,
    Operation.UPDATE_APPOINTMENT: _STAFF,
    Operation.CANCEL_APPOINTMENT: _STAFF,
    Operation.OPEN_NOTE: _CLINICIANS,
    Operation.FINALIZE_NOTE: _CLINICIANS,
    Operation.READ_INVOICE: _BILLING | {UserRole.DOCTOR},
    Operation.CREATE_INVOICE: _BILLING,
    Operation.UPDATE_INVOICE: _BILLING,
    Operation.DELETE_INVOICE: _BILLING,
    Operation.APPLY_PAYMENT: _BILLING,
    Operation.READ_AUDIT: frozenset({UserRole.ADMIN}),
}


def is_allowed(role: UserRole, operation: Operation) -> bool:
    """Operations missing from the table are denied to everyone."""
    return role in POLICY.get(operation, frozenset())
