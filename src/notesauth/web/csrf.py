"""Double-submit cookie CSRF protection.

The token lives in a cookie that page scripts can read and must be echoed in
the ``X-CSRF-Token`` header on every mutating request. A cross-site form can
make the browser send the cookie but cannot read it to set the header. No
server state is involved, so it also covers login and registration.
"""

import hmac
import secrets

import structlog
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from notesauth.errors import CSRFMismatch
from notesauth.web.error_handlers import create_json_error_response

logger = structlog.get_logger(__name__)

CSRF_COOKIE = "csrf_token"  # noqa: S105
CSRF_HEADER = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def issue_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def set_csrf_cookie(response: Response, token: str, *, secure: bool) -> None:
    """Attach the CSRF token as a script-readable cookie."""
    response.set_cookie(
        key=CSRF_COOKIE,
        value=token,
        httponly=False,
        samesite="lax",
        secure=secure,
    )


def csrf_tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    """Constant-time comparison; both values must be present and non-empty."""
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8"))


class CSRFMiddleware:
    """Reject mutating requests whose CSRF header does not match the CSRF cookie."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] in SAFE_METHODS:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if not csrf_tokens_match(request.cookies.get(CSRF_COOKIE), request.headers.get(CSRF_HEADER)):
            logger.warning(
                "csrf_rejected",
                method=scope["method"],
                path=scope["path"],
                has_cookie=CSRF_COOKIE in request.cookies,
                has_header=CSRF_HEADER in request.headers,
            )
            error = CSRFMismatch()
            response = create_json_error_response(status_code=403, message=str(error), error_type="csrf_mismatch")
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
