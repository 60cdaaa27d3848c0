"""
Patient repository - handles profile and doctor patient-list persistence
"""

from typing import Optional, List, Dict, Any
from datetime import date, datetime, time
import logging
import uuid

from pydantic import ValidationError

from ..models.patient import PatientProfile, PatientListEntry
from doctor_dashboard.core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class PatientRepository(BaseRepository):
    """Repository for patient profiles and the doctors' patient lists"""

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "users")
        self.doctor_patients_collection = db_manager.get_collection("doctor_patients")

    @staticmethod
    def new_patient_id() -> str:
        """Fresh, globally unique patient identifier"""
        return uuid.uuid4().hex

    async def find_by_id(self, patient_id: str) -> Optional[PatientProfile]:
        """Find a patient profile by identifier"""
        doc = await self.find_one({"_id": patient_id, "role": "patient"})
        return self._doc_to_profile(doc) if doc else None

    @staticmethod
    def write_timestamp() -> datetime:
        """Current UTC time at BSON (millisecond) precision"""
        now = datetime.utcnow()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    async def save_profile(
        self,
        patient_id: str,
        fields: Dict[str, Any],
        written_at: Optional[datetime] = None
    ) -> bool:
        """Merge ``fields`` into the profile document, creating it if needed"""
        written_at = written_at or self.write_timestamp()
        doc = dict(fields)
        if isinstance(doc.get("date_of_birth"), date):
            # BSON has no date-only type
            doc["date_of_birth"] = datetime.combine(doc["date_of_birth"], time.min)
        doc["updated_at"] = written_at

        return await self.update_one(
            {"_id": patient_id},
            {
                "$set": doc,
                "$setOnInsert": {"created_at": written_at},
            },
            upsert=True
        )

    async def delete_profile(self, patient_id: str) -> bool:
        """Remove a profile; only used to undo a half-finished creation"""
        return await self.delete_one({"_id": patient_id})

    async def add_to_doctor_list(self, doctor_id: str, entry: PatientListEntry) -> None:
        """Write the doctor's list entry for a patient, replacing any previous one"""
        await self.doctor_patients_collection.replace_one(
            {"doctor_id": doctor_id, "patient_id": entry.patient_id},
            {
                "doctor_id": doctor_id,
                **entry.model_dump(),
                "created_at": datetime.utcnow(),
            },
            upsert=True
        )

    async def list_doctor_patients(self, doctor_id: str) -> List[PatientListEntry]:
        """All list entries under a doctor, ordered by name"""
        docs = await self.doctor_patients_collection.find(
            {"doctor_id": doctor_id}
        ).sort([("last_name", 1), ("first_name", 1)]).to_list(length=None)

        return [
            PatientListEntry(
                patient_id=doc["patient_id"],
                first_name=doc.get("first_name", ""),
                last_name=doc.get("last_name", ""),
                email=doc.get("email", "")
            )
            for doc in docs
        ]

    def watch_profile(self, patient_id: str):
        """Change stream restricted to one profile document"""
        return self.watch([{"$match": {"documentKey._id": patient_id}}])

    def _doc_to_profile(self, doc: Dict[str, Any]) -> Optional[PatientProfile]:
        """Convert MongoDB document to profile"""
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        try:
            return PatientProfile.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping malformed profile {data['id']}: {e.error_count()} errors")
            return None
