import hashlib
import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _lock_key(scope: str, *parts) -> int:
    """Map a scope and key parts onto a signed 64-bit advisory lock id."""
    raw = ":".join([scope, *(str(p) for p in parts)]).encode()
    return int.from_bytes(hashlib.sha256(raw).digest()[:8], "big", signed=True)


def serialize_on(db: Session, scope: str, *parts) -> None:
    """Enter a critical section for ``(scope, *parts)`` until the transaction ends.

    PostgreSQL: transaction-scoped advisory lock, released on commit or
    rollback. SQLite: transactions already begin IMMEDIATE (see
    ``core.database``), so the write lock is held and nothing more is needed.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        key = _lock_key(scope, *parts)
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
        logger.debug(f"Acquired advisory lock {scope}:{parts}")
    elif dialect != "sqlite":
        logger.warning(f"No critical section available for dialect {dialect}")
