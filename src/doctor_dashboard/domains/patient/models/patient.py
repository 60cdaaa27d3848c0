"""
Patient domain models
"""

from typing import Annotated, Optional, Literal
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, StringConstraints, computed_field, field_validator


EARLIEST_DATE_OF_BIRTH = date(1900, 1, 1)
MIN_PHONE_DIGITS = 10

Gender = Literal["Male", "Female", "Other"]

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]


class PatientCreateRequest(BaseModel):
    """Input for adding a patient from the doctor dashboard"""
    first_name: Name = Field(..., description="At least 2 characters")
    last_name: Name = Field(..., description="At least 2 characters")
    email: EmailStr
    date_of_birth: date = Field(..., description="Between 1900-01-01 and today")
    gender: Gender
    phone_number: str = Field(..., description=f"At least {MIN_PHONE_DIGITS} digits")
    address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    password: str = Field(
        ...,
        min_length=6,
        repr=False,
        description="Initial password; advisory only, the patient registers separately"
    )

    @field_validator("date_of_birth")
    @classmethod
    def check_date_of_birth(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Date of birth cannot be in the future.")
        if value < EARLIEST_DATE_OF_BIRTH:
            raise ValueError("Date of birth must be on or after 1900-01-01.")
        return value

    @field_validator("phone_number")
    @classmethod
    def check_phone_number(cls, value: str) -> str:
        value = value.strip()
        if sum(ch.isdigit() for ch in value) < MIN_PHONE_DIGITS:
            raise ValueError(f"Phone number must be at least {MIN_PHONE_DIGITS} digits.")
        return value


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    relation: Optional[str] = None
    phone: Optional[str] = None


class PatientProfile(BaseModel):
    """Patient profile as stored in the users collection"""
    id: str
    first_name: str
    last_name: str
    role: Literal["patient"] = "patient"
    email: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    doctor_id: str

    # Filled in out of band
    blood_group: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def drop_time_of_day(cls, value):
        # Other writers store the birth date as a full timestamp
        if isinstance(value, datetime):
            return value.date()
        return value

    @computed_field
    @property
    def age(self) -> Optional[int]:
        """Whole years since date of birth"""
        if self.date_of_birth is None:
            return None
        today = date.today()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


class PatientListEntry(BaseModel):
    """Denormalized row in a doctor's patient list; written once at creation"""
    patient_id: str
    first_name: str
    last_name: str
    email: str


class PatientCreatedResponse(BaseModel):
    patient: PatientProfile
    message: str
