from __future__ import annotations

from pydantic import BaseModel, Field


class PasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class MessageRead(BaseModel):
    message: str
