from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReportCreate(BaseModel):
    file_number: str = Field(min_length=1, max_length=64)
    patient_tr_id_number: str = Field(min_length=11, max_length=11)
    diagnosis_title: str = Field(min_length=1, max_length=255)
    diagnosis_details: str = Field(min_length=1)
    date: datetime | None = None
    photo_path: str | None = Field(default=None, max_length=512)


class ReportUpdate(BaseModel):
    file_number: str | None = Field(default=None, min_length=1, max_length=64)
    patient_tr_id_number: str | None = Field(default=None, min_length=11, max_length=11)
    diagnosis_title: str | None = Field(default=None, min_length=1, max_length=255)
    diagnosis_details: str | None = Field(default=None, min_length=1)
    date: datetime | None = None
    photo_path: str | None = Field(default=None, max_length=512)


class ReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_number: str
    patient_tr_id_number: str
    diagnosis_title: str
    diagnosis_details: str
    date: datetime
    photo_path: str | None
    technician_username: str


class ReportFilters(BaseModel):
    file_number: str | None = None
    patient_tr_id_number: str | None = None
    diagnosis_title: str | None = None
    diagnosis_details: str | None = None
    date: str | None = None
    photo_path: str | None = None
    technician_username: str | None = None
    deleted: bool | None = None
