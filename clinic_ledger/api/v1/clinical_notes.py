from fastapi import APIRouter, Depends, status

from ...core.permissions import Operation
from ...core.security import Actor
from ...schemas.clinical_note import ClinicalNoteCreate, ClinicalNoteResponse
from ...services.clinical_note_service import ClinicalNoteService
from ..deps import get_note_service, require_permission

router = APIRouter(prefix="/clinical-notes", tags=["Clinical Notes"])

@router.post("", response_model=ClinicalNoteResponse, status_code=status.HTTP_201_CREATED)
async def open_note(
    data: ClinicalNoteCreate,
    actor: Actor = Depends(require_permission(Operation.OPEN_NOTE)),
    service: ClinicalNoteService = Depends(get_note_service),
):
    """Open a note; a linked appointment moves to IN_PROGRESS."""
    note = service.open_note(actor, data)
    return ClinicalNoteResponse.model_validate(note)

@router.get("/{note_id}", response_model=ClinicalNoteResponse)
async def get_note(
    note_id: int,
    actor: Actor = Depends(require_permission(Operation.OPEN_NOTE)),
    service: ClinicalNoteService = Depends(get_note_service),
):
    return ClinicalNoteResponse.model_validate(service.get_note(actor, note_id))

@router.post("/{note_id}/finalize", response_model=ClinicalNoteResponse)
async def finalize_note(
    note_id: int,
    actor: Actor = Depends(require_permission(Operation.FINALIZE_NOTE)),
    service: ClinicalNoteService = Depends(get_note_service),
):
    """Finalize a note; a linked appointment moves to COMPLETED."""
    note = service.finalize_note(actor, note_id)
    return ClinicalNoteResponse.model_validate(note)
