"""Pydantic models for record payloads and record snapshots."""

import re
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

CaptureMethod = Literal["business_card", "event_badge"]

PHONE_PATTERN = re.compile(r"^[\+]?[1-9][\d]{0,15}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
WEBSITE_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class _RecordFields(BaseModel):
    """Shared field checks for create and update payloads."""

    @field_validator("name", "title", "company", "phone", "email", "website", "notes", mode="before", check_fields=False)
    @classmethod
    def strip_strings(cls, v):
        return _strip(v)

    @field_validator("phone", check_fields=False)
    @classmethod
    def validate_phone(cls, v):
        if v and not PHONE_PATTERN.match(v):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("email", check_fields=False)
    @classmethod
    def validate_email(cls, v):
        if v and not EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email address")
        return v

    @field_validator("website", check_fields=False)
    @classmethod
    def validate_website(cls, v):
        if v and not WEBSITE_PATTERN.match(v):
            raise ValueError("Please provide a valid website URL")
        return v

    @field_validator("interests", check_fields=False)
    @classmethod
    def validate_interests(cls, v):
        if v is None:
            return v
        cleaned = []
        for item in v:
            item = item.strip()
            if not item or len(item) > 100:
                raise ValueError("Each interest must be 1-100 characters")
            cleaned.append(item)
        return cleaned


class RecordCreate(_RecordFields):
    """Payload for creating a record."""
    name: str = Field(min_length=1, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=500)
    interests: list[str] = Field(max_length=20)
    notes: Optional[str] = Field(default=None, max_length=2000)
    capture_method: CaptureMethod
    captured_at: datetime
    local_id: Optional[str] = Field(default=None, max_length=255)


class RecordUpdate(_RecordFields):
    """Partial update payload - only fields that were set are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=500)
    interests: Optional[list[str]] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=2000)
    capture_method: Optional[CaptureMethod] = None
    captured_at: Optional[datetime] = None


class RecordView(BaseModel):
    """Detached snapshot of a stored record."""
    id: str
    owner_id: str
    local_id: str | None = None
    name: str
    title: str | None = None
    company: str
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    interests: list[str] = []
    notes: str | None = None
    capture_method: str
    captured_at: datetime
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    sync_version: int

    class Config:
        from_attributes = True


class RecordListResponse(BaseModel):
    """Page of records."""
    records: list[RecordView]
    limit: int
    offset: int
