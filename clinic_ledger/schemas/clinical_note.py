from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class ClinicalNoteCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    notes: Optional[str] = None


class ClinicalNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    patient_id: int
    appointment_id: Optional[int] = None
    doctor_id: int
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    notes: Optional[str] = None
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
