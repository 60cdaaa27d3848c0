from datetime import datetime

import pytest
from pydantic import ValidationError

from doctor_dashboard.domains.records.models.records import (
    RecordKind,
    RecordView,
    filter_records,
    health_record_adapter,
    project_view,
    sort_records,
)


def make(record_id, record_type="medicalHistory", created_at=None):
    details = {
        "medicalHistory": "note",
        "prescription": {
            "medication": "Metformin", "dosage": "500mg", "date": "2024-01-10",
            "status": "Active", "doctor": "Dr. Meera Rao",
        },
        "labReport": {"name": "HbA1c", "date": "2024-02-01", "issuer": "City Diagnostics"},
    }[record_type]
    return health_record_adapter.validate_python({
        "id": record_id,
        "patient_id": "P",
        "record_type": record_type,
        "details": details,
        "created_at": created_at,
    })


@pytest.fixture
def mixed():
    return [
        make("h1", created_at=datetime(2024, 1, 1)),
        make("p1", "prescription", created_at=datetime(2024, 3, 1)),
        make("h2", created_at=datetime(2024, 2, 1)),
        make("l1", "labReport"),
        make("h3"),
    ]


def test_view_kinds():
    assert RecordView.HISTORY.kind is RecordKind.MEDICAL_HISTORY
    assert RecordView.PRESCRIPTIONS.kind is RecordKind.PRESCRIPTION
    assert RecordView("lab-reports").kind is RecordKind.LAB_REPORT


def test_discriminator_selects_detail_shape():
    assert isinstance(make("p1", "prescription").details.medication, str)
    assert make("l1", "labReport").details.issuer == "City Diagnostics"

    with pytest.raises(ValidationError):
        health_record_adapter.validate_python({
            "id": "x", "patient_id": "P", "record_type": "prescription", "details": "free text"
        })


def test_filter_keeps_kind_and_order(mixed):
    assert [r.id for r in filter_records(mixed, RecordKind.MEDICAL_HISTORY)] == ["h1", "h2", "h3"]
    assert [r.id for r in filter_records(mixed, RecordKind.LAB_REPORT)] == ["l1"]


def test_filter_is_idempotent(mixed):
    once = filter_records(mixed, RecordKind.PRESCRIPTION)
    assert filter_records(once, RecordKind.PRESCRIPTION) == once


def test_sort_newest_first_missing_timestamps_last(mixed):
    assert [r.id for r in sort_records(mixed)] == ["p1", "h2", "h1", "l1", "h3"]


def test_sort_keeps_input_order_for_ties():
    stamp = datetime(2024, 5, 5, 10, 0)
    records = [make("a", created_at=stamp), make("b", created_at=stamp), make("c", created_at=stamp)]

    assert [r.id for r in sort_records(records)] == ["a", "b", "c"]


def test_helpers_do_not_mutate_input(mixed):
    before = [r.id for r in mixed]

    project_view(mixed, RecordKind.MEDICAL_HISTORY)

    assert [r.id for r in mixed] == before


def test_project_view(mixed):
    assert [r.id for r in project_view(mixed, RecordKind.MEDICAL_HISTORY)] == ["h2", "h1", "h3"]
    assert project_view([], RecordKind.LAB_REPORT) == []


def test_offset_timestamps_become_naive_utc():
    record = make("z", created_at="2024-03-01T12:00:00-04:00")

    assert record.created_at == datetime(2024, 3, 1, 16, 0)
    assert record.created_at.tzinfo is None
    assert [r.id for r in sort_records([make("n", created_at=datetime(2024, 3, 1, 15)), record])] == ["z", "n"]
