"""
Patient controller - HTTP endpoint handlers
"""

from typing import List
from fastapi import APIRouter, Path, Depends, status
import logging

from ..models.patient import (
    PatientCreateRequest,
    PatientCreatedResponse,
    PatientListEntry,
    PatientProfile
)
from ..services.patient_service import PatientService
from doctor_dashboard.core.dependencies import get_patient_service
from doctor_dashboard.core.exceptions import NotFound
from doctor_dashboard.core.security import Actor, get_current_actor
from doctor_dashboard.core.subscriptions import event_stream


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/patients", tags=["patients"])


@router.post("", response_model=PatientCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: PatientCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: PatientService = Depends(get_patient_service)
) -> PatientCreatedResponse:
    """
    Add a patient and list them under the calling doctor

    The initial password is only checked, not stored: the patient signs up
    separately with the same email.
    """
    return await service.create_patient(actor, request)


@router.get("", response_model=List[PatientListEntry])
async def list_patients(
    actor: Actor = Depends(get_current_actor),
    service: PatientService = Depends(get_patient_service)
) -> List[PatientListEntry]:
    """The calling doctor's patient list"""
    return await service.list_patients(actor)


@router.get("/{patient_id}", response_model=PatientProfile)
async def get_patient(
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: PatientService = Depends(get_patient_service)
) -> PatientProfile:
    """Fetch a patient profile"""
    patient = await service.get_patient(patient_id)

    if not patient:
        raise NotFound("Patient not found", detail=f"No patient with id {patient_id}")

    return patient


@router.get("/{patient_id}/stream")
async def stream_patient(
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: PatientService = Depends(get_patient_service)
):
    """
    Live patient profile

    Server-Sent Events; each event carries the whole profile, or null
    while no profile exists under the identifier.
    """
    return event_stream(
        service.watch_patient(patient_id),
        lambda profile: profile.model_dump(mode="json") if profile else None
    )
