"""User schemas for response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User role enumeration."""

    PATIENT = "patient"
    PROVIDER = "provider"
    ADMIN = "admin"


class UserResponse(BaseModel):
    """User schema for API responses."""

    id: UUID
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = Field(None, max_length=20)
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProviderSummary(BaseModel):
    """Provider entry for booking forms."""

    id: UUID
    first_name: str | None = None
    last_name: str | None = None

    model_config = {"from_attributes": True}
