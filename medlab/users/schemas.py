from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Role(str, Enum):
    ADMIN = "ADMIN"
    SECRETARY = "SECRETARY"
    TECHNICIAN = "TECHNICIAN"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class UserCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    username: str = Field(min_length=3, max_length=100)
    hospital_id: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=8)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    gender: Gender
    roles: list[Role] = Field(min_length=1)


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    username: str | None = Field(default=None, min_length=3, max_length=100)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    gender: Gender | None = None


class RoleRequest(BaseModel):
    role: Role


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    username: str
    hospital_id: str
    email: str
    gender: str
    roles: list[str]


class UsernameRead(BaseModel):
    username: str


class UserFilters(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    hospital_id: str | None = None
    email: str | None = None
    role: Role | None = None
    gender: Gender | None = None
    deleted: bool | None = None
