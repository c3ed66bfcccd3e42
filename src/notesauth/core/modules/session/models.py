"""Session management models."""

from datetime import datetime
from typing import NewType
from uuid import UUID

from pydantic import BaseModel

AuthToken = NewType("AuthToken", str)


class Session(BaseModel):
    """Server-side record of a login.

    Keyed by the HMAC of the raw token; the raw token only ever lives in the client cookie.
    """

    token_hash: str
    user_id: UUID
    created_at: datetime
    expires_at: datetime

    def is_expired(self, at: datetime) -> bool:
        return at > self.expires_at
