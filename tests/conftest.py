import asyncio
import os
from datetime import datetime

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-dashboard-suite")
os.environ.setdefault("ENVIRONMENT", "test")

import fakeredis
import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from doctor_dashboard.core.cache import CacheManager
from doctor_dashboard.core.config import ApplicationConfig, DatabaseConfig, RedisConfig
from doctor_dashboard.core.database import DatabaseManager
from doctor_dashboard.core.security import Actor, issue_token
from doctor_dashboard.domains.patient.repositories.patient_repository import PatientRepository
from doctor_dashboard.domains.patient.services.patient_service import PatientService
from doctor_dashboard.domains.records.repositories.record_repository import RecordRepository
from doctor_dashboard.domains.records.services.record_service import RecordService
from doctor_dashboard.main import DashboardContext, create_app


class FakeChangeStream:
    """In-memory stand-in for a Motor change stream; push None to end it"""

    def __init__(self):
        self.queue = asyncio.Queue()
        self.closed = False

    def push(self, change):
        self.queue.put_nowait(change)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        change = await self.queue.get()
        if change is None:
            raise StopAsyncIteration
        return change


@pytest.fixture
def doctor():
    return Actor(uid="doctor-d", display_name="Meera Rao", email="meera@clinic.example")


@pytest.fixture
def other_doctor():
    return Actor(uid="doctor-e", display_name="Arjun Nair")


@pytest.fixture
def patient_payload():
    return {
        "first_name": "Anjali",
        "last_name": "Sharma",
        "date_of_birth": "1990-05-02",
        "gender": "Female",
        "phone_number": "9876543210",
        "email": "anjali@example.com",
        "address": "Pune, MH",
        "password": "secret1",
    }


@pytest.fixture
async def db_manager():
    manager = DatabaseManager(DatabaseConfig(name="doctor_dashboard_test"), client=AsyncMongoMockClient())
    await manager.initialize()
    yield manager
    await manager.cleanup()


@pytest.fixture
async def cache_manager():
    manager = CacheManager(RedisConfig(enabled=True), client=fakeredis.FakeAsyncRedis())
    await manager.initialize()
    yield manager
    await manager.cleanup()


@pytest.fixture
def patient_repository(db_manager):
    return PatientRepository(db_manager)


@pytest.fixture
def patient_service(patient_repository, cache_manager):
    return PatientService(patient_repository, cache_manager, profile_ttl_seconds=60)


@pytest.fixture
def record_repository(db_manager):
    return RecordRepository(db_manager)


@pytest.fixture
def record_service(record_repository):
    return RecordService(record_repository)


@pytest.fixture
def insert_record(db_manager):
    """Write a raw health record document, bypassing the service"""

    async def _insert(patient_id, record_type, details, created_at=None, added_by="doctor-d"):
        doc = {
            "record_type": record_type,
            "details": details,
            "patient_id": patient_id,
            "added_by": added_by,
        }
        if created_at is not None:
            doc["created_at"] = created_at
        result = await db_manager.get_collection("health_records").insert_one(doc)
        return str(result.inserted_id)

    return _insert


@pytest.fixture
def lab_report():
    return {"name": "HbA1c", "date": "2024-02-01", "issuer": "City Diagnostics"}


@pytest.fixture
def old_timestamp():
    return datetime(2020, 1, 1, 9, 30)


@pytest.fixture
async def client(db_manager, cache_manager):
    context = DashboardContext(
        config=ApplicationConfig(),
        db_manager=db_manager,
        cache_manager=cache_manager
    )
    app = create_app(context)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def auth_headers(doctor):
    return {"Authorization": f"Bearer {issue_token(doctor)}"}


@pytest.fixture
def change_stream():
    return FakeChangeStream()
