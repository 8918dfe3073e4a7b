"""Schemas describing board users."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.enums import UserRole


class PublicUser(BaseModel):
    """Minimal public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: UserRole = UserRole.USER


class UserRead(PublicUser):
    """Representation of the authenticated user."""

    created_at: datetime
