"""
Pydantic schemas for the photobooth API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from photobooth.db import StripRecord


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=72)


class LoginRequest(BaseModel):
    identifier: str
    password: str


class UserSummary(BaseModel):
    id: str
    username: str
    email: str


class LoginResponse(BaseModel):
    access_token: str
    user: UserSummary


class MessageResponse(BaseModel):
    message: str


class SaveStripRequest(BaseModel):
    id: Optional[str] = ""
    image: str
    title: Optional[str] = ""
    caption: Optional[str] = ""


class SaveStripResponse(BaseModel):
    message: str
    id: str
    file_url: str
    expires_at: Optional[datetime] = None


class StripResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    title: str
    caption: str
    file_url: str
    is_guest: bool
    expires_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: StripRecord) -> "StripResponse":
        return cls(**record.as_dict())


class StripListResponse(BaseModel):
    strips: list[StripResponse]


class UpdateStripRequest(BaseModel):
    title: Optional[str] = ""
    caption: Optional[str] = ""


class UpdateStripResponse(BaseModel):
    message: str
    strip: StripResponse


class SweepResponse(BaseModel):
    deleted: int
