"""
Health record repository - one shared collection for every record kind
"""

from typing import Optional, List, Dict, Any
import logging

from bson import ObjectId
from pydantic import ValidationError

from ..models.records import HealthRecord, RecordKind, health_record_adapter
from doctor_dashboard.core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class RecordRepository(BaseRepository):
    """Repository for health record persistence"""

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "health_records")

    async def list_for_patient(self, patient_id: str) -> List[HealthRecord]:
        """Every record of a patient, in store order.

        Patient scoping is the only predicate sent to the store; kind
        filtering and ordering are left to the caller.
        """
        docs = await self.find_many({"patient_id": patient_id})

        records = []
        for doc in docs:
            record = self._doc_to_record(doc)
            if record is not None:
                records.append(record)
        return records

    async def create(
        self,
        patient_id: str,
        kind: RecordKind,
        details: Any,
        added_by: str
    ) -> HealthRecord:
        """Append one record; the store assigns its identifier"""
        doc = {
            "record_type": kind.value,
            "details": details,
            "patient_id": patient_id,
            "added_by": added_by,
        }
        record_id = await self.insert_one(doc)
        doc["_id"] = record_id
        return health_record_adapter.validate_python(self._prepare(doc))

    async def delete(self, patient_id: str, record_id: str) -> bool:
        """Remove a record from a patient's collection"""
        if not ObjectId.is_valid(record_id):
            return False
        return await self.delete_one({"_id": ObjectId(record_id), "patient_id": patient_id})

    def watch_patient_records(self, patient_id: str):
        """Change stream for one patient's records.

        Delete events carry no document body, so every delete wakes every
        watcher; watchers drop unchanged results.
        """
        return self.watch([
            {"$match": {
                "$or": [
                    {"fullDocument.patient_id": patient_id},
                    {"operationType": "delete"},
                ]
            }}
        ])

    @staticmethod
    def _prepare(doc: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return data

    def _doc_to_record(self, doc: Dict[str, Any]) -> Optional[HealthRecord]:
        """Convert MongoDB document to a typed record, or None if unusable"""
        data = self._prepare(doc)
        try:
            return health_record_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning(
                f"Skipping health record {data['id']} of type {data.get('record_type')!r}: "
                f"{e.error_count()} validation errors"
            )
            return None
