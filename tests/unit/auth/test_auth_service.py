"""Tests for password checks and session lifecycle in AuthService."""

from datetime import timedelta

import pytest

from notesauth.core.modules.password.hasher import PasswordHasher
from notesauth.errors import AuthenticationError, SessionInvalid


@pytest.fixture
def stores(backend_stores):
    return backend_stores


@pytest.fixture
async def alice(core):
    return await core.services.user.create_user("Alice@Example.com", "secret123")


class TestAuthenticate:
    """Tests for credential checks."""

    async def test_correct_credentials(self, core, alice):
        user = await core.services.auth.authenticate("alice@example.com", "secret123")
        assert user.id == alice.id

    async def test_email_is_case_insensitive(self, core, alice):
        user = await core.services.auth.authenticate("  ALICE@example.com ", "secret123")
        assert user.id == alice.id

    async def test_wrong_password(self, core, alice):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await core.services.auth.authenticate("alice@example.com", "wrong-password")

    async def test_unknown_email_fails_the_same_way(self, core):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await core.services.auth.authenticate("nobody@example.com", "secret123")

    async def test_outdated_cost_is_rehashed(self, core, alice):
        """Test that a hash with an old cost is upgraded after a successful login."""
        old_hash = PasswordHasher(rounds=5).hash("secret123")
        await core.stores.users.set_password_hash(alice.id, old_hash)

        await core.services.auth.authenticate("alice@example.com", "secret123")

        stored = await core.stores.users.get_by_id(alice.id)
        assert stored.password_hash != old_hash
        assert not core.hasher.needs_rehash(stored.password_hash)


class TestSessionLifecycle:
    """Tests for create, validate and delete."""

    async def test_created_session_validates(self, core, alice):
        auth_token = await core.services.auth.create_session(alice.id)
        user = await core.services.auth.validate_session(auth_token)
        assert user.id == alice.id

    async def test_raw_token_is_not_stored(self, core, alice):
        """Test that the store only ever sees the token hash."""
        auth_token = await core.services.auth.create_session(alice.id)
        assert await core.stores.sessions.get(auth_token) is None
        assert await core.stores.sessions.get(core.codec.hash(auth_token)) is not None

    async def test_unknown_token(self, core):
        with pytest.raises(SessionInvalid):
            await core.services.auth.validate_session("not-a-session")

    async def test_expired_session(self, core, alice, clock):
        auth_token = await core.services.auth.create_session(alice.id)
        clock.advance(core.config.session_ttl + timedelta(seconds=1))
        with pytest.raises(SessionInvalid):
            await core.services.auth.validate_session(auth_token)

    async def test_session_valid_at_expiry_instant(self, core, alice, clock):
        auth_token = await core.services.auth.create_session(alice.id)
        clock.advance(core.config.session_ttl)
        assert (await core.services.auth.validate_session(auth_token)).id == alice.id

    async def test_deleted_session(self, core, alice):
        auth_token = await core.services.auth.create_session(alice.id)
        await core.services.auth.delete_session(auth_token)
        with pytest.raises(SessionInvalid):
            await core.services.auth.validate_session(auth_token)

    async def test_delete_unknown_session_is_noop(self, core):
        await core.services.auth.delete_session("not-a-session")

    async def test_validate_reads_user_fresh(self, core, alice):
        """Test that a change to the user is visible on the next validation."""
        auth_token = await core.services.auth.create_session(alice.id)
        await core.services.user.mark_email_verified(alice.id)
        user = await core.services.auth.validate_session(auth_token)
        assert user.email_verified is True


class TestDeleteAllUserSessions:
    """Tests for bulk revocation."""

    async def test_revokes_every_session(self, core, alice):
        tokens = [await core.services.auth.create_session(alice.id) for _ in range(3)]
        assert await core.services.auth.delete_all_user_sessions(alice.id) == 3
        for auth_token in tokens:
            with pytest.raises(SessionInvalid):
                await core.services.auth.validate_session(auth_token)

    async def test_other_users_unaffected(self, core, alice):
        bob = await core.services.user.create_user("bob@example.com", "secret123")
        bob_token = await core.services.auth.create_session(bob.id)
        await core.services.auth.create_session(alice.id)

        await core.services.auth.delete_all_user_sessions(alice.id)

        assert (await core.services.auth.validate_session(bob_token)).id == bob.id

    async def test_keep_current_session(self, core, alice):
        current = await core.services.auth.create_session(alice.id)
        other = await core.services.auth.create_session(alice.id)

        assert await core.services.auth.delete_all_user_sessions(alice.id, keep=current) == 1

        assert (await core.services.auth.validate_session(current)).id == alice.id
        with pytest.raises(SessionInvalid):
            await core.services.auth.validate_session(other)
