from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from notesauth.config import Config
from notesauth.core.core import Core, Stores
from notesauth.core.modules.auth.models import Identity
from notesauth.core.modules.mail.mailer import Mailer, compose
from notesauth.core.modules.session.models import AuthToken
from notesauth.core.modules.token.models import TokenPurpose
from notesauth.core.modules.user.models import UserView
from notesauth.core.modules.user.validators import validate_email
from notesauth.errors import NotFoundError, SessionInvalid, TokenNotFound
from notesauth.utils import normalize_email, now, redact_email

logger = structlog.get_logger(__name__)


class App:
    """Facade for all auth use cases; routes call this, never the services directly."""

    def __init__(
        self,
        config: Config,
        stores: Stores | None = None,
        mailer: Mailer | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self._core = Core(config, stores=stores, mailer=mailer, clock=clock)

    @property
    def config(self) -> Config:
        return self._core.config

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def resolve_identity(self, auth_token: AuthToken) -> Identity | None:
        """Return the identity behind a session token, or None if the token is not a live session."""
        try:
            user = await self._core.services.auth.validate_session(auth_token)
        except SessionInvalid:
            return None
        return Identity(user=user, auth_token=auth_token)

    async def register(self, email: str, password: str) -> tuple[UserView, AuthToken]:
        """Create an account, send the verification link and sign the new user in."""
        user = await self._core.services.user.create_user(email, password)
        await self._send_token_mail(TokenPurpose.VERIFY_EMAIL, user.email, str(user.id))
        auth_token = await self._core.services.auth.create_session(user.id)
        return UserView.from_domain(user), auth_token

    async def login(self, email: str, password: str) -> tuple[UserView, AuthToken]:
        """Authenticate user and create session."""
        user = await self._core.services.auth.authenticate(email, password)
        auth_token = await self._core.services.auth.create_session(user.id)
        return UserView.from_domain(user), auth_token

    async def logout(self, identity: Identity) -> None:
        """Invalidate the current session."""
        await self._core.services.auth.delete_session(identity.auth_token)

    async def get_current_user(self, identity: Identity) -> UserView:
        return UserView.from_domain(identity.user)

    async def change_password(self, identity: Identity, old_password: str, new_password: str) -> AuthToken:
        """Change password, end every existing session and return a fresh one for the caller."""
        user_id = identity.user.id
        await self._core.services.user.change_password(user_id, old_password, new_password)
        await self._core.services.auth.delete_all_user_sessions(user_id)
        return await self._core.services.auth.create_session(user_id)

    async def verify_email(self, raw_token: str) -> None:
        user_id = await self._core.services.token.verify_email(raw_token)
        try:
            await self._core.services.user.mark_email_verified(user_id)
        except NotFoundError as e:
            # Account deleted after the link was sent
            raise TokenNotFound from e

    async def resend_verification(self, identity: Identity) -> None:
        """Send a new verification link unless the address is already verified."""
        user = identity.user
        if user.email_verified:
            return
        await self._send_token_mail(TokenPurpose.VERIFY_EMAIL, user.email, str(user.id))

    async def request_magic_link(self, email: str) -> None:
        """Mail a sign-in link. Completes the same way whether or not an account exists."""
        email = normalize_email(email)
        validate_email(email)
        await self._send_token_mail(TokenPurpose.MAGIC_LINK, email, email)

    async def verify_magic_link(self, raw_token: str) -> tuple[UserView, AuthToken]:
        """Consume a magic link and sign in, creating the account on first use."""
        email = await self._core.services.token.verify_magic_link(raw_token)
        user = await self._core.services.user.find_by_email(email)
        if user is None:
            user = await self._core.services.user.create_passwordless_user(email)
        elif not user.email_verified:
            await self._core.services.user.mark_email_verified(user.id)
            user = await self._core.services.user.get_user(user.id)
        auth_token = await self._core.services.auth.create_session(user.id)
        return UserView.from_domain(user), auth_token

    async def forgot_password(self, email: str) -> None:
        """Mail a reset link if the account exists.

        The route schedules this after responding, so callers learn nothing from the outcome.
        """
        user = await self._core.services.user.find_by_email(email)
        if user is None:
            logger.info("password_reset_unknown_email", email=redact_email(email))
            return
        await self._send_token_mail(TokenPurpose.RESET_PASSWORD, user.email, str(user.id))

    async def reset_password(self, raw_token: str, new_password: str) -> tuple[UserView, AuthToken]:
        """Set a new password from a reset link, end all sessions and sign in again."""
        # Reject a weak password before the token is spent
        self._core.services.user.check_password(new_password)
        user_id = await self._core.services.token.verify_password_reset(raw_token)
        try:
            await self._core.services.user.set_password(user_id, new_password)
        except NotFoundError as e:
            raise TokenNotFound from e
        # Following the link proves control of the mailbox
        await self._core.services.user.mark_email_verified(user_id)
        await self._core.services.auth.delete_all_user_sessions(user_id)
        auth_token = await self._core.services.auth.create_session(user_id)
        user = await self._core.services.user.get_user(user_id)
        return UserView.from_domain(user), auth_token

    async def _send_token_mail(self, purpose: TokenPurpose, to: str, subject: str) -> None:
        raw_token = await self._core.services.token.issue(purpose, subject)
        await self._core.mailer.send(compose(self._core.config.base_url, purpose, to, raw_token))
