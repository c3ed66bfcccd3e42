from uuid import UUID

import structlog

from notesauth.core.core import Service
from notesauth.core.modules.session.models import AuthToken, Session
from notesauth.core.modules.user.models import User
from notesauth.errors import AuthenticationError, SessionInvalid
from notesauth.utils import as_utc, normalize_email, redact_email

logger = structlog.get_logger(__name__)


class AuthService(Service):
    """Passwords and sessions: the single seam routes and flows depend on."""

    def hash_password(self, password: str) -> str:
        return self.core.hasher.hash(password)

    def verify_password(self, password_hash: str, password: str) -> bool:
        return self.core.hasher.verify(password_hash, password)

    def generate_session_token(self) -> tuple[AuthToken, str]:
        raw, token_hash = self.core.codec.generate()
        return AuthToken(raw), token_hash

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials, failing the same way for unknown email and wrong password."""
        user = await self.stores.users.get_by_email(normalize_email(email))
        if user is None:
            self.core.hasher.verify_dummy(password)
            logger.info("login_failed", reason="unknown_email", email=redact_email(email))
            raise AuthenticationError("Invalid email or password")
        if not self.verify_password(user.password_hash, password):
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise AuthenticationError("Invalid email or password")

        if self.core.hasher.needs_rehash(user.password_hash):
            await self.stores.users.set_password_hash(user.id, self.hash_password(password))
            logger.info("password_rehashed", user_id=str(user.id))
        return user

    async def create_session(self, user_id: UUID) -> AuthToken:
        auth_token, token_hash = self.generate_session_token()
        created_at = self.core.clock()
        session = Session(
            token_hash=token_hash,
            user_id=user_id,
            created_at=created_at,
            expires_at=created_at + self.core.config.session_ttl,
        )
        await self.stores.sessions.create(session)
        logger.info("session_created", user_id=str(user_id), session=token_hash[:12])
        return auth_token

    async def validate_session(self, auth_token: AuthToken) -> User:
        """Resolve a raw session token to its user, re-reading the user every time."""
        session = await self.stores.sessions.get(self.core.codec.hash(auth_token))
        if session is None or as_utc(self.core.clock()) > as_utc(session.expires_at):
            raise SessionInvalid

        user = await self.stores.users.get_by_id(session.user_id)
        if user is None:
            raise SessionInvalid
        return user

    async def delete_session(self, auth_token: AuthToken) -> None:
        """Remove one session. Unknown tokens are ignored."""
        token_hash = self.core.codec.hash(auth_token)
        if await self.stores.sessions.delete(token_hash):
            logger.info("session_deleted", session=token_hash[:12])

    async def delete_all_user_sessions(self, user_id: UUID, keep: AuthToken | None = None) -> int:
        """Revoke every session of a user, optionally sparing the caller's own."""
        keep_hash = self.core.codec.hash(keep) if keep is not None else None
        removed = await self.stores.sessions.delete_all_for_user(user_id, keep=keep_hash)
        logger.info("sessions_revoked", user_id=str(user_id), count=removed, kept_current=keep_hash is not None)
        return removed
