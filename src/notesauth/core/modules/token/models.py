"""Single-use token models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class TokenPurpose(StrEnum):
    VERIFY_EMAIL = "verify_email"
    MAGIC_LINK = "magic_link"
    RESET_PASSWORD = "reset_password"  # noqa: S105


class SingleUseToken(BaseModel):
    """One-time credential sent by email.

    State machine: issued (used=False) -> consumed (used=True), or expired.
    Always looked up by (token_hash, purpose), so a token minted for one flow
    is never accepted by another.
    """

    token_hash: str
    purpose: TokenPurpose
    subject: str  # user id for verify_email/reset_password, email for magic_link
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    used_at: datetime | None = None

    def is_expired(self, at: datetime) -> bool:
        return at > self.expires_at
