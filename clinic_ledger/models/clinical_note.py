from sqlalchemy import Column, Integer, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class ClinicalNote(Base):
    __tablename__ = "clinical_notes"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    # At most one note per appointment
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, unique=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Free text; content is not interpreted here
    chief_complaint = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    treatment = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    is_finalized = Column(Boolean, default=False, nullable=False)
    finalized_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="clinical_note")
    patient = relationship("Patient")

    def __repr__(self):
        return f"<ClinicalNote(id={self.id}, appointment_id={self.appointment_id}, finalized={self.is_finalized})>"
