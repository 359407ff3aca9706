from datetime import datetime, timedelta

from clinic_ledger.core.security import Actor, UserRole, create_access_token
from clinic_ledger.services.audit import AuditSink


class RecordingAuditSink(AuditSink):
    """Keeps audit records in memory for assertions."""

    def __init__(self):
        self.records = []

    def write(self, actor, action, entity_type, entity_id, entity_name):
        self.records.append((actor.user_id, action, entity_type, entity_id, entity_name))


class FailingAuditSink(AuditSink):
    def write(self, actor, action, entity_type, entity_id, entity_name):
        raise RuntimeError("audit store unavailable")


def auth_headers(user_id: int, clinic_id: int) -> dict:
    token = create_access_token(user_id, clinic_id)
    return {"Authorization": f"Bearer {token}"}


def make_actor(user_id: int, clinic_id: int, role: UserRole) -> Actor:
    return Actor(user_id=user_id, clinic_id=clinic_id, role=role)


# A fixed day well in the future keeps slots readable: at(10) -> 10:00
DAY = datetime(2030, 3, 4)


def at(hour: int, minute: int = 0) -> datetime:
    return DAY + timedelta(hours=hour, minutes=minute)


def iso(value: datetime) -> str:
    return value.isoformat()
