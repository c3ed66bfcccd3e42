"""Request identity: a soft stage that identifies, a hard stage that enforces.

``AuthenticateMiddleware`` runs for every HTTP request and stores the result
in the request scope, including ``None`` for anonymous requests. The
``require_auth`` dependency only reads that slot; it never touches a store.
"""

import structlog
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from notesauth.app import App
from notesauth.core.modules.auth.models import Identity
from notesauth.core.modules.session.models import AuthToken
from notesauth.errors import AuthenticationError

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "session_token"
IDENTITY_KEY = "identity"

# Backend failures while resolving a cookie; the request continues as anonymous
STORE_ERRORS = (RedisError, PyMongoError, OSError)


class AuthenticateMiddleware:
    """Attach the session's Identity to the request scope, never rejecting the request."""

    def __init__(self, app: ASGIApp, notes_app: App) -> None:
        self.app = app
        self.notes_app = notes_app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        identity: Identity | None = None
        raw_token = Request(scope).cookies.get(SESSION_COOKIE)
        if raw_token:
            try:
                identity = await self.notes_app.resolve_identity(AuthToken(raw_token))
            except STORE_ERRORS:
                logger.exception("session_lookup_failed", path=scope["path"])

        scope.setdefault("state", {})[IDENTITY_KEY] = identity
        await self.app(scope, receive, send)


def current_identity(request: Request) -> Identity | None:
    state = request.scope.get("state", {})
    if IDENTITY_KEY not in state:
        raise RuntimeError("AuthenticateMiddleware must wrap every route that reads the request identity")
    return state[IDENTITY_KEY]


async def require_auth(request: Request) -> Identity:
    """Reject the request with 401 unless AuthenticateMiddleware resolved a user."""
    identity = current_identity(request)
    if identity is None:
        raise AuthenticationError
    return identity
