from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BloodType(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class PatientCreate(BaseModel):
    tr_id_number: str = Field(min_length=11, max_length=11)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    birth_date: date
    gender: str = Field(pattern="^(MALE|FEMALE)$")
    blood_type: BloodType | None = None
    phone_number: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)


class PatientUpdate(BaseModel):
    tr_id_number: str | None = Field(default=None, min_length=11, max_length=11)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    birth_date: date | None = None
    gender: str | None = Field(default=None, pattern="^(MALE|FEMALE)$")
    blood_type: BloodType | None = None
    phone_number: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)


class PatientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tr_id_number: str
    first_name: str
    last_name: str
    birth_date: date
    gender: str
    blood_type: str | None
    phone_number: str | None
    email: str | None


class PatientFilters(BaseModel):
    tr_id_number: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    blood_type: str | None = None
    birth_date: str | None = None
    deleted: bool | None = None
