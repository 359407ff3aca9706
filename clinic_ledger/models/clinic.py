from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, UniqueConstraint,
    Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.security import UserRole

class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    members = relationship("ClinicMember", back_populates="clinic")

    def __repr__(self):
        return f"<Clinic(id={self.id}, name='{self.name}')>"

class ClinicMember(Base):
    """A user's membership and role inside one clinic."""
    __tablename__ = "clinic_members"
    __table_args__ = (
        UniqueConstraint("clinic_id", "user_id", name="uq_clinic_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    clinic = relationship("Clinic", back_populates="members")
    user = relationship("User", back_populates="memberships")

    def __repr__(self):
        return f"<ClinicMember(clinic_id={self.clinic_id}, user_id={self.user_id}, role='{self.role}')>"

class ClinicCounter(Base):
    """Per-clinic monotonically increasing sequence (e.g. invoice numbers)."""
    __tablename__ = "clinic_counters"

    clinic_id = Column(Integer, ForeignKey("clinics.id"), primary_key=True)
    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ClinicCounter(clinic_id={self.clinic_id}, name='{self.name}', value={self.value})>"
