"""
Patient service - business logic layer
"""

from typing import Optional, List, Dict, Any, Union
import logging

from pymongo.errors import PyMongoError

from ..models.patient import (
    PatientCreateRequest,
    PatientCreatedResponse,
    PatientListEntry,
    PatientProfile
)
from ..repositories.patient_repository import PatientRepository
from doctor_dashboard.core import metrics
from doctor_dashboard.core.cache import CacheManager, CacheKeyBuilder
from doctor_dashboard.core.exceptions import WriteError, validate_payload
from doctor_dashboard.core.security import Actor, require_actor
from doctor_dashboard.core.subscriptions import LiveQuery


logger = logging.getLogger(__name__)


class PatientService:
    """Service layer for patient operations"""

    def __init__(
        self,
        repository: PatientRepository,
        cache: Optional[CacheManager] = None,
        profile_ttl_seconds: int = 300
    ):
        self.repository = repository
        self.cache = cache
        self.profile_ttl_seconds = profile_ttl_seconds

    async def create_patient(
        self,
        actor: Optional[Actor],
        data: Union[PatientCreateRequest, Dict[str, Any]]
    ) -> PatientCreatedResponse:
        """Create a patient profile and list it under the calling doctor.

        Two writes: the profile (merge) and then the doctor's list entry.
        When the second write fails the profile is removed again so the
        doctor is never left with an unlisted patient.
        """
        doctor = require_actor(actor)
        request = validate_payload(PatientCreateRequest, data)

        patient_id = self.repository.new_patient_id()
        written_at = self.repository.write_timestamp()
        profile_fields = {
            "first_name": request.first_name,
            "last_name": request.last_name,
            "role": "patient",
            "email": str(request.email),
            "date_of_birth": request.date_of_birth,
            "gender": request.gender,
            "phone_number": request.phone_number,
            "address": request.address,
            "doctor_id": doctor.uid,
        }

        try:
            await self.repository.save_profile(patient_id, profile_fields, written_at)
        except PyMongoError as e:
            metrics.write_failures.labels("create_profile").inc()
            logger.error(f"Failed to write profile {patient_id}: {e}")
            raise WriteError("Failed to add patient.") from e

        entry = PatientListEntry(
            patient_id=patient_id,
            first_name=request.first_name,
            last_name=request.last_name,
            email=str(request.email)
        )
        try:
            await self.repository.add_to_doctor_list(doctor.uid, entry)
        except PyMongoError as e:
            metrics.write_failures.labels("add_to_doctor_list").inc()
            logger.error(f"Failed to list patient {patient_id} under doctor {doctor.uid}: {e}")
            await self._undo_profile(patient_id)
            raise WriteError("Failed to add patient.") from e

        if self.cache:
            await self.cache.delete(CacheKeyBuilder.doctor_patients_key(doctor.uid))

        metrics.patients_created.inc()
        logger.info(f"Doctor {doctor.uid} added patient {patient_id}")

        # Built from the acknowledged writes, not read back
        profile = PatientProfile(
            id=patient_id,
            created_at=written_at,
            updated_at=written_at,
            **profile_fields
        )
        return PatientCreatedResponse(
            patient=profile,
            message=(
                f"{request.first_name} {request.last_name} has been added. "
                "They will need to sign up with this email to access their dashboard."
            )
        )

    async def _undo_profile(self, patient_id: str) -> None:
        try:
            await self.repository.delete_profile(patient_id)
            logger.info(f"Rolled back profile {patient_id}")
        except PyMongoError as e:
            logger.error(f"Orphaned profile {patient_id} left behind, rollback failed: {e}")

    async def get_patient(self, patient_id: str) -> Optional[PatientProfile]:
        """Fetch a patient profile by identifier"""
        key = CacheKeyBuilder.patient_key(patient_id)

        if self.cache:
            cached = await self.cache.get(key)
            if cached:
                return PatientProfile.model_validate(cached)

        profile = await self.repository.find_by_id(patient_id)

        if profile and self.cache:
            await self.cache.set(
                key,
                profile.model_dump(mode="json", exclude={"age"}),
                ttl_seconds=self.profile_ttl_seconds
            )

        return profile

    def watch_patient(self, patient_id: str) -> LiveQuery[Optional[PatientProfile]]:
        """Live view of one profile, read straight from the store"""
        return LiveQuery(
            fetch=lambda: self.repository.find_by_id(patient_id),
            open_stream=lambda: self.repository.watch_profile(patient_id),
            target="patient"
        )

    async def list_patients(self, actor: Optional[Actor]) -> List[PatientListEntry]:
        """The calling doctor's patient list"""
        doctor = require_actor(actor)
        key = CacheKeyBuilder.doctor_patients_key(doctor.uid)

        if self.cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return [PatientListEntry.model_validate(item) for item in cached]

        entries = await self.repository.list_doctor_patients(doctor.uid)

        if self.cache:
            await self.cache.set(
                key,
                [entry.model_dump() for entry in entries],
                ttl_seconds=self.profile_ttl_seconds
            )

        return entries
