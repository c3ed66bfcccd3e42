import secrets
from uuid import UUID

import structlog

from notesauth.core.core import Service
from notesauth.core.modules.user.models import User
from notesauth.core.modules.user.validators import validate_email, validate_password
from notesauth.errors import NotFoundError, ValidationError
from notesauth.utils import normalize_email, redact_email

logger = structlog.get_logger(__name__)


class UserService(Service):
    """Registration, lookup and the two credential fields the auth core may write."""

    async def get_user(self, user_id: UUID) -> User:
        """Get user by ID, always read fresh from the store."""
        user = await self.stores.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return user

    async def find_by_email(self, email: str) -> User | None:
        return await self.stores.users.get_by_email(normalize_email(email))

    def check_password(self, password: str) -> None:
        validate_password(password, self.core.config.min_password_length)

    async def create_user(self, email: str, password: str, *, email_verified: bool = False) -> User:
        """Create user with hashed password. Raises ConflictError if the email is taken."""
        email = normalize_email(email)
        validate_email(email)
        self.check_password(password)

        user = User(
            email=email,
            password_hash=self.core.services.auth.hash_password(password),
            email_verified=email_verified,
        )
        await self.stores.users.insert(user)
        logger.info("user_created", user_id=str(user.id), email=redact_email(email))
        return user

    async def create_passwordless_user(self, email: str) -> User:
        """Create an account for a magic-link sign-in.

        The mailbox is already proven, and the random password is never
        revealed, so the user signs in by link until they reset it.
        """
        return await self.create_user(email, secrets.token_urlsafe(32), email_verified=True)

    async def set_password(self, user_id: UUID, new_password: str) -> None:
        self.check_password(new_password)
        password_hash = self.core.services.auth.hash_password(new_password)
        if not await self.stores.users.set_password_hash(user_id, password_hash):
            raise NotFoundError(f"User '{user_id}' not found")

    async def change_password(self, user_id: UUID, old_password: str, new_password: str) -> None:
        """Change user password after verifying current password."""
        user = await self.get_user(user_id)
        if not self.core.services.auth.verify_password(user.password_hash, old_password):
            raise ValidationError("Invalid current password")
        if old_password == new_password:
            raise ValidationError("New password must differ from the current one")
        await self.set_password(user_id, new_password)

    async def mark_email_verified(self, user_id: UUID) -> None:
        if not await self.stores.users.mark_email_verified(user_id):
            raise NotFoundError(f"User '{user_id}' not found")
