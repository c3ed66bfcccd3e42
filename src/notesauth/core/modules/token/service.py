"""Issue and consume single-use tokens for the email-driven flows.

All three flows share one state machine; only the TTL and the meaning of
``subject`` change per purpose.
"""

from datetime import timedelta
from uuid import UUID

import structlog

from notesauth.core.core import Service
from notesauth.core.modules.token.models import SingleUseToken, TokenPurpose
from notesauth.errors import TokenError, TokenNotFound
from notesauth.utils import normalize_email

logger = structlog.get_logger(__name__)


class TokenService(Service):
    def ttl_for(self, purpose: TokenPurpose) -> timedelta:
        config = self.core.config
        match purpose:
            case TokenPurpose.VERIFY_EMAIL:
                return config.verify_email_ttl
            case TokenPurpose.MAGIC_LINK:
                return config.magic_link_ttl
            case TokenPurpose.RESET_PASSWORD:
                return config.reset_password_ttl

    async def issue(self, purpose: TokenPurpose, subject: str) -> str:
        """Persist a fresh token and return the raw value for the outgoing link.

        Earlier unused tokens for the same purpose and subject stop working.
        """
        issued_at = self.core.clock()
        revoked = await self.stores.tokens.revoke_outstanding(purpose, subject, issued_at)

        raw, token_hash = self.core.codec.generate()
        token = SingleUseToken(
            token_hash=token_hash,
            purpose=purpose,
            subject=subject,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl_for(purpose),
        )
        await self.stores.tokens.insert(token)
        logger.info("token_issued", purpose=purpose.value, token_hash=token_hash[:12], superseded=revoked)
        return raw

    async def consume(self, purpose: TokenPurpose, raw: str) -> SingleUseToken:
        """Atomically mark the token used and return it as it was before."""
        token_hash = self.core.codec.hash(raw)
        try:
            token = await self.stores.tokens.consume(token_hash, purpose, self.core.clock())
        except TokenError as e:
            logger.info("token_rejected", purpose=purpose.value, token_hash=token_hash[:12], reason=type(e).__name__)
            raise
        logger.info("token_consumed", purpose=purpose.value, token_hash=token_hash[:12])
        return token

    async def issue_email_verification(self, user_id: UUID) -> str:
        return await self.issue(TokenPurpose.VERIFY_EMAIL, str(user_id))

    async def verify_email(self, raw: str) -> UUID:
        return _subject_as_user_id(await self.consume(TokenPurpose.VERIFY_EMAIL, raw))

    async def issue_magic_link(self, email: str) -> str:
        return await self.issue(TokenPurpose.MAGIC_LINK, normalize_email(email))

    async def verify_magic_link(self, raw: str) -> str:
        """Return the email the link was sent to. Finding or creating the account is the caller's call."""
        return (await self.consume(TokenPurpose.MAGIC_LINK, raw)).subject

    async def issue_password_reset(self, user_id: UUID) -> str:
        return await self.issue(TokenPurpose.RESET_PASSWORD, str(user_id))

    async def verify_password_reset(self, raw: str) -> UUID:
        """Return the user whose password may now be set. The caller must revoke their sessions."""
        return _subject_as_user_id(await self.consume(TokenPurpose.RESET_PASSWORD, raw))


def _subject_as_user_id(token: SingleUseToken) -> UUID:
    try:
        return UUID(token.subject)
    except ValueError as e:
        logger.error("token_subject_malformed", purpose=token.purpose.value)
        raise TokenNotFound from e
