from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from notesauth.core.db import MongoModel
from notesauth.utils import now


class User(MongoModel):
    """User domain model with credentials."""

    email: str  # stored lower-cased
    password_hash: str  # bcrypt hash
    email_verified: bool = False
    created_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    email_verified: bool = Field(..., description="Whether the email address has been confirmed")
    created_at: datetime = Field(..., description="Registration time")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, email=user.email, email_verified=user.email_verified, created_at=user.created_at)
