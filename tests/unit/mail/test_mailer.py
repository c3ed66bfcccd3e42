"""Tests for composing token emails."""

from structlog.testing import capture_logs

from notesauth.app import App
from notesauth.core.core import Stores
from notesauth.core.modules.mail.mailer import ConsoleMailer, OutboxMailer, build_link, compose
from notesauth.core.modules.token.models import TokenPurpose


class TestBuildLink:
    """Tests for link construction."""

    def test_fragment_route_per_purpose(self):
        assert build_link("https://notes.example.com", TokenPurpose.MAGIC_LINK, "abc") == (
            "https://notes.example.com/#magic-link?token=abc"
        )
        assert build_link("https://notes.example.com/", TokenPurpose.RESET_PASSWORD, "abc") == (
            "https://notes.example.com/#reset-password?token=abc"
        )

    def test_token_is_quoted(self):
        assert build_link("https://x.test", TokenPurpose.VERIFY_EMAIL, "a+b").endswith("token=a%2Bb")


class TestCompose:
    """Tests for message composition."""

    def test_body_contains_link(self):
        message = compose("https://x.test", TokenPurpose.VERIFY_EMAIL, "alice@example.com", "abc")
        assert message.to == "alice@example.com"
        assert message.subject == "Verify your email address"
        assert message.link in message.body


class TestOutboxMailer:
    """Tests for the in-memory mailer."""

    async def test_last_to(self):
        outbox = OutboxMailer()
        await outbox.send(compose("https://x.test", TokenPurpose.MAGIC_LINK, "bob@example.com", "one"))
        await outbox.send(compose("https://x.test", TokenPurpose.MAGIC_LINK, "bob@example.com", "two"))
        last = outbox.last_to("bob@example.com")
        assert last is not None
        assert last.link.endswith("token=two")
        assert outbox.last_to("carol@example.com") is None


class TestConsoleMailer:
    """Tests for the development mailer."""

    async def test_logs_envelope_only(self):
        message = compose("https://x.test", TokenPurpose.RESET_PASSWORD, "alice@example.com", "secret-raw-token")
        with capture_logs() as events:
            await ConsoleMailer().send(message)

        (event,) = events
        assert event["event"] == "mail_console"
        assert event["purpose"] == "reset_password"
        assert event["to"] == "al***@example.com"
        assert "secret-raw-token" not in str(event)

    async def test_token_flows_never_log_raw_tokens(self, config, clock):
        """Test that no event from issuing magic-link and reset mail carries a usable token."""
        app = App(config, stores=Stores.in_memory(clock), mailer=ConsoleMailer(), clock=clock)
        await app.register("alice@example.com", "secret123")

        with capture_logs() as events:
            await app.request_magic_link("bob@example.com")
            await app.forgot_password("alice@example.com")

        assert {e["event"] for e in events} >= {"token_issued", "mail_console"}
        for event in events:
            assert "token=" not in str(event)
            assert "link" not in event
            assert "body" not in event
