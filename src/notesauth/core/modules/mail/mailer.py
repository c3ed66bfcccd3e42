"""Outgoing mail for the token flows.

Delivery itself is pluggable: the app only composes messages that carry a
single-use link and hands them to whatever ``Mailer`` it was given.
"""

from typing import Protocol
from urllib.parse import quote

import structlog
from pydantic import BaseModel

from notesauth.core.modules.token.models import TokenPurpose
from notesauth.utils import redact_email

logger = structlog.get_logger(__name__)

# Client-side routes that read ?token= from the fragment
LINK_PATHS: dict[TokenPurpose, str] = {
    TokenPurpose.VERIFY_EMAIL: "verify-email",
    TokenPurpose.MAGIC_LINK: "magic-link",
    TokenPurpose.RESET_PASSWORD: "reset-password",
}

SUBJECTS: dict[TokenPurpose, str] = {
    TokenPurpose.VERIFY_EMAIL: "Verify your email address",
    TokenPurpose.MAGIC_LINK: "Your login link",
    TokenPurpose.RESET_PASSWORD: "Reset your password",
}

BODIES: dict[TokenPurpose, str] = {
    TokenPurpose.VERIFY_EMAIL: "Confirm your email address by opening this link:\n\n{link}\n",
    TokenPurpose.MAGIC_LINK: "Sign in by opening this link. It expires shortly and works once:\n\n{link}\n",
    TokenPurpose.RESET_PASSWORD: (
        "Someone asked to reset your password. If it was you, open this link:\n\n{link}\n\n"
        "If it was not you, ignore this message."
    ),
}


class MailMessage(BaseModel):
    to: str
    purpose: TokenPurpose
    subject: str
    body: str
    link: str


class Mailer(Protocol):
    async def send(self, message: MailMessage) -> None: ...


def build_link(base_url: str, purpose: TokenPurpose, raw_token: str) -> str:
    return f"{base_url.rstrip('/')}/#{LINK_PATHS[purpose]}?token={quote(raw_token)}"


def compose(base_url: str, purpose: TokenPurpose, to: str, raw_token: str) -> MailMessage:
    link = build_link(base_url, purpose, raw_token)
    return MailMessage(
        to=to, purpose=purpose, subject=SUBJECTS[purpose], body=BODIES[purpose].format(link=link), link=link
    )


class ConsoleMailer:
    """Development mailer: records that a message would have been sent.

    The body and link carry a live single-use token and never reach the log.
    Correlate with the `token_issued` event, which logs the token hash prefix.
    """

    async def send(self, message: MailMessage) -> None:
        logger.info(
            "mail_console", to=redact_email(message.to), subject=message.subject, purpose=message.purpose.value
        )


class OutboxMailer:
    """Keeps sent messages in memory."""

    def __init__(self) -> None:
        self.sent: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        logger.debug("mail_queued", to=redact_email(message.to), subject=message.subject)
        self.sent.append(message)

    def last_to(self, address: str) -> MailMessage | None:
        return next((m for m in reversed(self.sent) if m.to == address), None)
