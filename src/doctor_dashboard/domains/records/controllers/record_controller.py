"""
Health record controller - HTTP endpoint handlers for the record views
"""

from typing import List
from fastapi import APIRouter, Path, Depends, Response, status
import logging

from ..models.records import (
    HealthRecord,
    MedicalHistoryCreate,
    PrescriptionCreate,
    RecordView
)
from ..services.record_service import RecordService
from doctor_dashboard.core.dependencies import get_record_service
from doctor_dashboard.core.security import Actor, get_current_actor
from doctor_dashboard.core.subscriptions import event_stream


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/patients/{patient_id}", tags=["records"])


@router.get("/views/{view}", response_model=List[HealthRecord])
async def list_view(
    view: RecordView,
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: RecordService = Depends(get_record_service)
) -> List[HealthRecord]:
    """
    Records shown in one dashboard tab

    Newest first. An unknown patient yields an empty list.
    """
    return await service.list_records(patient_id, view.kind)


@router.get("/views/{view}/stream")
async def stream_view(
    view: RecordView,
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: RecordService = Depends(get_record_service)
):
    """
    Live version of a dashboard tab

    Server-Sent Events; each event carries the full, sorted record list.
    """
    return event_stream(
        service.watch_records(patient_id, view.kind),
        lambda records: [record.model_dump(mode="json") for record in records]
    )


@router.post("/views/history", response_model=HealthRecord, status_code=status.HTTP_201_CREATED)
async def add_medical_history(
    entry: MedicalHistoryCreate,
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: RecordService = Depends(get_record_service)
) -> HealthRecord:
    """Add a medical history entry"""
    return await service.add_medical_history(actor, patient_id, entry)


@router.post("/views/prescriptions", response_model=HealthRecord, status_code=status.HTTP_201_CREATED)
async def add_prescription(
    prescription: PrescriptionCreate,
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: RecordService = Depends(get_record_service)
) -> HealthRecord:
    """Add a prescription; the prescribing doctor is the caller"""
    return await service.add_prescription(actor, patient_id, prescription)


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: str = Path(..., description="Health record ID"),
    patient_id: str = Path(..., description="Patient ID"),
    actor: Actor = Depends(get_current_actor),
    service: RecordService = Depends(get_record_service)
) -> Response:
    """
    Remove a record

    Always answers 204; a missing record or a failed delete is not reported.
    """
    await service.delete_record(patient_id, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
