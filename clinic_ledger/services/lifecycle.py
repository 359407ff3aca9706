"""
Appointment status state machine.

Staff may confirm, cancel or mark no-show. ``IN_PROGRESS`` and
``COMPLETED`` are reached only through clinical-note events so the note
and its appointment never disagree.
"""
import logging
from typing import Dict, FrozenSet

from ..core.errors import InvalidTransitionError
from ..models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED, S.NO_SHOW}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW}),
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Only these may have time or doctor changed
SCHEDULE_EDITABLE_STATUSES = frozenset({S.SCHEDULED, S.CONFIRMED})

NOTE_DRIVEN_STATUSES = frozenset({S.IN_PROGRESS, S.COMPLETED})


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]


class AppointmentLifecycle:
    """Applies status changes to a loaded appointment; persistence is the caller's."""

    def transition(self, appointment: Appointment, target: AppointmentStatus) -> bool:
        """Move to ``target``. Returns False when already there (no-op)."""
        current = appointment.status
        if current == target:
            return False
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot change appointment from {current.value} to {target.value}"
            )
        appointment.status = target
        logger.info(f"Appointment {appointment.id}: {current.value} -> {target.value}")
        return True

    def staff_transition(self, appointment: Appointment, target: AppointmentStatus) -> bool:
        if target in NOTE_DRIVEN_STATUSES and appointment.status != target:
            raise InvalidTransitionError(
                f"{target.value} is set by the clinical note workflow"
            )
        return self.transition(appointment, target)

    def ensure_schedule_editable(self, appointment: Appointment) -> None:
        if appointment.status not in SCHEDULE_EDITABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot change time or doctor of a {appointment.status.value} appointment"
            )

    def on_note_opened(self, appointment: Appointment) -> None:
        """A note was opened against the appointment: it is now in progress.

        A still-unconfirmed appointment is confirmed on the way.
        """
        if appointment.status == S.SCHEDULED:
            self.transition(appointment, S.CONFIRMED)
        self.transition(appointment, S.IN_PROGRESS)

    def on_note_finalized(self, appointment: Appointment) -> None:
        self.transition(appointment, S.COMPLETED)
