"""
Health record service - views, creation and deletion of patient records
"""

from typing import Optional, List, Dict, Any, Union
import logging

from pymongo.errors import PyMongoError

from ..models.records import (
    HealthRecord,
    MedicalHistoryCreate,
    PrescriptionCreate,
    PrescriptionDetails,
    RecordKind,
    project_view,
    sort_records
)
from ..repositories.record_repository import RecordRepository
from doctor_dashboard.core import metrics
from doctor_dashboard.core.exceptions import WriteError, validate_payload
from doctor_dashboard.core.security import Actor, require_actor
from doctor_dashboard.core.subscriptions import LiveQuery


logger = logging.getLogger(__name__)


class RecordService:
    """Service layer for health record operations"""

    def __init__(self, repository: RecordRepository):
        self.repository = repository

    async def list_records(
        self,
        patient_id: str,
        kind: Optional[RecordKind] = None
    ) -> List[HealthRecord]:
        """A patient's records of one kind, newest first.

        An unknown patient and a patient without records look the same:
        an empty list.
        """
        records = await self.repository.list_for_patient(patient_id)
        if kind is None:
            return sort_records(records)
        return project_view(records, kind)

    def watch_records(self, patient_id: str, kind: RecordKind) -> LiveQuery[List[HealthRecord]]:
        """Live version of ``list_records``"""
        return LiveQuery(
            fetch=lambda: self.list_records(patient_id, kind),
            open_stream=lambda: self.repository.watch_patient_records(patient_id),
            target=kind.value
        )

    async def add_medical_history(
        self,
        actor: Optional[Actor],
        patient_id: str,
        data: Union[MedicalHistoryCreate, Dict[str, Any]]
    ) -> HealthRecord:
        doctor = require_actor(actor)
        entry = validate_payload(MedicalHistoryCreate, data)
        return await self._create(doctor, patient_id, RecordKind.MEDICAL_HISTORY, entry.details)

    async def add_prescription(
        self,
        actor: Optional[Actor],
        patient_id: str,
        data: Union[PrescriptionCreate, Dict[str, Any]]
    ) -> HealthRecord:
        doctor = require_actor(actor)
        prescription = validate_payload(PrescriptionCreate, data)
        details = PrescriptionDetails(
            medication=prescription.medication,
            dosage=prescription.dosage,
            date=prescription.date.isoformat(),
            status=prescription.status,
            doctor=f"Dr. {doctor.display_name or 'Unknown'}"
        )
        return await self._create(doctor, patient_id, RecordKind.PRESCRIPTION, details.model_dump())

    async def _create(self, doctor: Actor, patient_id: str, kind: RecordKind, details: Any) -> HealthRecord:
        try:
            record = await self.repository.create(patient_id, kind, details, added_by=doctor.uid)
        except PyMongoError as e:
            metrics.write_failures.labels(f"create_{kind.value}").inc()
            logger.error(f"Failed to add {kind.value} record for patient {patient_id}: {e}")
            raise WriteError(f"Could not add {kind.value} record.") from e

        metrics.records_created.labels(kind.value).inc()
        logger.info(f"Doctor {doctor.uid} added {kind.value} record {record.id} for patient {patient_id}")
        return record

    async def delete_record(self, patient_id: str, record_id: str) -> None:
        """Remove a record. Store failures are logged, never raised."""
        try:
            deleted = await self.repository.delete(patient_id, record_id)
        except PyMongoError as e:
            metrics.delete_failures.inc()
            logger.error(f"Failed to delete record {record_id} of patient {patient_id}: {e}")
            return

        if deleted:
            metrics.records_deleted.inc()
            logger.info(f"Deleted record {record_id} of patient {patient_id}")
        else:
            logger.debug(f"Record {record_id} of patient {patient_id} was already gone")
