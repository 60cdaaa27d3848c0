"""
Health record domain models

Every record of a patient lives in one collection; ``record_type`` says
which of the three detail shapes a document carries.
"""

from enum import Enum
from typing import Annotated, Iterable, List, Literal, Optional, Union
import datetime as dt
from pydantic import BaseModel, Field, StringConstraints, TypeAdapter, field_validator


class RecordKind(str, Enum):
    MEDICAL_HISTORY = "medicalHistory"
    PRESCRIPTION = "prescription"
    LAB_REPORT = "labReport"


class RecordView(str, Enum):
    """Dashboard tabs, one record kind each"""
    HISTORY = "history"
    PRESCRIPTIONS = "prescriptions"
    LAB_REPORTS = "lab-reports"

    @property
    def kind(self) -> RecordKind:
        return VIEW_KINDS[self]


VIEW_KINDS = {
    RecordView.HISTORY: RecordKind.MEDICAL_HISTORY,
    RecordView.PRESCRIPTIONS: RecordKind.PRESCRIPTION,
    RecordView.LAB_REPORTS: RecordKind.LAB_REPORT,
}

PrescriptionStatus = Literal["Active", "Finished"]

Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class PrescriptionDetails(BaseModel):
    medication: str
    dosage: str
    date: str
    status: PrescriptionStatus
    doctor: str


class LabReportDetails(BaseModel):
    name: str
    date: str
    issuer: str


class _RecordBase(BaseModel):
    id: str
    patient_id: str
    added_by: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    @field_validator("created_at")
    @classmethod
    def as_naive_utc(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        """Stored timestamps are naive UTC; offset-carrying values are converted"""
        if value is not None and value.tzinfo is not None:
            return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value


class MedicalHistoryRecord(_RecordBase):
    record_type: Literal["medicalHistory"]
    details: str


class PrescriptionRecord(_RecordBase):
    record_type: Literal["prescription"]
    details: PrescriptionDetails


class LabReportRecord(_RecordBase):
    record_type: Literal["labReport"]
    details: LabReportDetails


HealthRecord = Annotated[
    Union[MedicalHistoryRecord, PrescriptionRecord, LabReportRecord],
    Field(discriminator="record_type")
]

health_record_adapter = TypeAdapter(HealthRecord)


class MedicalHistoryCreate(BaseModel):
    details: str = Field(..., description="Free-text history entry")

    @field_validator("details")
    @classmethod
    def check_details(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Medical history entry cannot be empty.")
        return value


class PrescriptionCreate(BaseModel):
    medication: Required = Field(..., description="Medication name")
    dosage: Required
    date: dt.date = Field(default_factory=dt.date.today)
    status: PrescriptionStatus = "Active"


def filter_records(records: Iterable[HealthRecord], kind: RecordKind) -> List[HealthRecord]:
    """Records of one kind, input order kept"""
    return [record for record in records if record.record_type == kind.value]


def sort_records(records: Iterable[HealthRecord]) -> List[HealthRecord]:
    """Newest first; records without a timestamp sort last, ties keep input order"""
    return sorted(
        records,
        key=lambda record: (record.created_at is not None, record.created_at or dt.datetime.min),
        reverse=True
    )


def project_view(records: Iterable[HealthRecord], kind: RecordKind) -> List[HealthRecord]:
    return sort_records(filter_records(records, kind))
