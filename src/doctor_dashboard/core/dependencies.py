"""
Dependency injection for the application
"""

from fastapi import Request, Depends

from .cache import CacheManager
from .database import DatabaseManager

# Domain services
from doctor_dashboard.domains.patient.services.patient_service import PatientService
from doctor_dashboard.domains.patient.repositories.patient_repository import PatientRepository

from doctor_dashboard.domains.records.services.record_service import RecordService
from doctor_dashboard.domains.records.repositories.record_repository import RecordRepository


# Infrastructure dependencies
async def get_dashboard_context(request: Request):
    """Get the application service context"""
    return request.app.state.context


async def get_database_manager(context=Depends(get_dashboard_context)) -> DatabaseManager:
    """Get MongoDB database manager"""
    return context.db_manager


async def get_cache_manager(context=Depends(get_dashboard_context)) -> CacheManager:
    """Get Redis cache manager"""
    return context.cache_manager


# Repository dependencies
async def get_patient_repository(
    db_manager: DatabaseManager = Depends(get_database_manager)
) -> PatientRepository:
    """Get patient repository instance"""
    return PatientRepository(db_manager)


async def get_record_repository(
    db_manager: DatabaseManager = Depends(get_database_manager)
) -> RecordRepository:
    """Get health record repository instance"""
    return RecordRepository(db_manager)


# Service dependencies
async def get_patient_service(
    repository: PatientRepository = Depends(get_patient_repository),
    cache_manager: CacheManager = Depends(get_cache_manager)
) -> PatientService:
    """Get patient service instance"""
    return PatientService(
        repository,
        cache_manager,
        profile_ttl_seconds=cache_manager.config.profile_ttl_seconds
    )


async def get_record_service(
    repository: RecordRepository = Depends(get_record_repository)
) -> RecordService:
    """Get health record service instance"""
    return RecordService(repository)
