from datetime import date, datetime

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from doctor_dashboard.core.exceptions import AuthenticationRequired, ValidationFailed, WriteError
from doctor_dashboard.core.security import Actor
from doctor_dashboard.domains.records.models.records import RecordKind


async def test_medical_history_scenario(record_service, insert_record, doctor, old_timestamp):
    """History added by doctor D for patient P shows first in P's history view."""
    await insert_record("P", "medicalHistory", "Seasonal allergies", created_at=old_timestamp)

    record = await record_service.add_medical_history(
        doctor, "P", {"details": "Diagnosed with Type 2 Diabetes"}
    )

    assert record.record_type == "medicalHistory"
    assert record.details == "Diagnosed with Type 2 Diabetes"
    assert record.patient_id == "P"
    assert record.added_by == doctor.uid
    assert record.created_at is not None

    history = await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)
    assert [item.details for item in history] == ["Diagnosed with Type 2 Diabetes", "Seasonal allergies"]
    assert history[0].id == record.id


async def test_prescription_scenario(record_service, doctor):
    record = await record_service.add_prescription(doctor, "P", {
        "medication": "Metformin",
        "dosage": "500mg twice daily",
        "date": "2024-01-10",
        "status": "Active",
    })

    assert record.record_type == "prescription"
    assert record.details.medication == "Metformin"
    assert record.details.dosage == "500mg twice daily"
    assert record.details.date == "2024-01-10"
    assert record.details.status == "Active"
    assert record.details.doctor == "Dr. Meera Rao"

    prescriptions = await record_service.list_records("P", RecordKind.PRESCRIPTION)
    assert [item.id for item in prescriptions] == [record.id]

    await record_service.delete_record("P", record.id)

    assert await record_service.list_records("P", RecordKind.PRESCRIPTION) == []


async def test_prescription_defaults(record_service):
    anonymous_doctor = Actor(uid="doctor-x")
    record = await record_service.add_prescription(anonymous_doctor, "P", {
        "medication": "Amoxicillin",
        "dosage": "250mg",
    })

    assert record.details.doctor == "Dr. Unknown"
    assert record.details.status == "Active"
    assert record.details.date == date.today().isoformat()


async def test_kind_filter_includes_own_kind_only(record_service, insert_record, doctor, lab_report):
    history = await record_service.add_medical_history(doctor, "P", {"details": "Asthma"})
    prescription = await record_service.add_prescription(doctor, "P", {
        "medication": "Salbutamol", "dosage": "2 puffs", "date": "2024-03-01", "status": "Finished"
    })
    await insert_record("P", "labReport", lab_report)

    assert [r.id for r in await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)] == [history.id]
    assert [r.id for r in await record_service.list_records("P", RecordKind.PRESCRIPTION)] == [prescription.id]

    reports = await record_service.list_records("P", RecordKind.LAB_REPORT)
    assert len(reports) == 1
    assert reports[0].details.issuer == "City Diagnostics"


async def test_records_are_scoped_to_their_patient(record_service, doctor):
    await record_service.add_medical_history(doctor, "P", {"details": "Asthma"})

    assert await record_service.list_records("Q", RecordKind.MEDICAL_HISTORY) == []


async def test_unknown_patient_yields_empty_list(record_service):
    assert await record_service.list_records("nobody", RecordKind.LAB_REPORT) == []


async def test_records_without_timestamp_sort_last(record_service, insert_record, old_timestamp):
    await insert_record("P", "medicalHistory", "undated")
    await insert_record("P", "medicalHistory", "older", created_at=old_timestamp)
    await insert_record("P", "medicalHistory", "newer", created_at=datetime(2023, 6, 1))

    history = await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)

    assert [item.details for item in history] == ["newer", "older", "undated"]


async def test_malformed_documents_are_skipped(record_service, insert_record, lab_report):
    await insert_record("P", "labReport", "not a structured payload")
    await insert_record("P", "xray", {"name": "Chest"})
    await insert_record("P", "prescription", {"medication": "Metformin"})
    good = await insert_record("P", "labReport", lab_report)

    reports = await record_service.list_records("P", RecordKind.LAB_REPORT)
    assert [r.id for r in reports] == [good]
    assert await record_service.list_records("P", RecordKind.PRESCRIPTION) == []


async def test_medical_history_shape_is_not_checked_against_prescription(record_service, insert_record):
    # A free-text history entry never needs prescription fields
    await insert_record("P", "medicalHistory", "Penicillin allergy")

    history = await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)
    assert history[0].details == "Penicillin allergy"


@pytest.mark.parametrize("payload,field", [
    ({"details": "   "}, "details"),
    ({}, "details"),
])
async def test_invalid_history_is_rejected_before_write(record_service, db_manager, doctor, payload, field):
    with pytest.raises(ValidationFailed) as excinfo:
        await record_service.add_medical_history(doctor, "P", payload)

    assert excinfo.value.fields == [field]
    assert await db_manager.get_collection("health_records").count_documents({}) == 0


@pytest.mark.parametrize("override,field", [
    ({"medication": ""}, "medication"),
    ({"dosage": " "}, "dosage"),
    ({"status": "Paused"}, "status"),
    ({"date": "10/01/2024"}, "date"),
])
async def test_invalid_prescription_is_rejected_before_write(
    record_service, db_manager, doctor, override, field
):
    payload = {"medication": "Metformin", "dosage": "500mg", "date": "2024-01-10", "status": "Active"}
    payload.update(override)

    with pytest.raises(ValidationFailed) as excinfo:
        await record_service.add_prescription(doctor, "P", payload)

    assert excinfo.value.fields == [field]
    assert await db_manager.get_collection("health_records").count_documents({}) == 0


async def test_record_creation_requires_an_actor(record_service):
    with pytest.raises(AuthenticationRequired):
        await record_service.add_medical_history(None, "P", {"details": "Asthma"})


async def test_store_failure_surfaces_as_write_error(record_service, record_repository, doctor, monkeypatch):
    async def broken(*args, **kwargs):
        raise PyMongoError("not primary")

    monkeypatch.setattr(record_repository, "create", broken)

    with pytest.raises(WriteError):
        await record_service.add_medical_history(doctor, "P", {"details": "Asthma"})


async def test_concurrent_creations_get_distinct_ids(record_service, doctor, other_doctor):
    first = await record_service.add_medical_history(doctor, "P", {"details": "Fever"})
    second = await record_service.add_medical_history(other_doctor, "P", {"details": "Fever"})

    assert first.id != second.id
    assert len(await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)) == 2


async def test_deleting_missing_records_is_silent(record_service):
    await record_service.delete_record("P", str(ObjectId()))
    await record_service.delete_record("P", "not-an-object-id")


async def test_delete_is_scoped_to_patient(record_service, doctor):
    record = await record_service.add_medical_history(doctor, "P", {"details": "Asthma"})

    await record_service.delete_record("Q", record.id)

    assert len(await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)) == 1


async def test_delete_failures_are_swallowed(record_service, record_repository, monkeypatch):
    async def broken(*args, **kwargs):
        raise PyMongoError("network timeout")

    monkeypatch.setattr(record_repository, "delete", broken)

    assert await record_service.delete_record("P", str(ObjectId())) is None


async def test_offset_and_naive_timestamps_sort_together(record_service, insert_record):
    await insert_record("P", "medicalHistory", "naive", created_at=datetime(2023, 1, 1))
    await insert_record("P", "medicalHistory", "offset", created_at="2024-01-01T05:30:00+05:30")
    await insert_record("P", "medicalHistory", "undated")

    history = await record_service.list_records("P", RecordKind.MEDICAL_HISTORY)

    assert [item.details for item in history] == ["offset", "naive", "undated"]
    assert history[0].created_at == datetime(2024, 1, 1)
