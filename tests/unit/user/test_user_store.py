"""Tests for the user store backends."""

from uuid import uuid4

import pytest

from notesauth.core.modules.user.models import User
from notesauth.core.modules.user.store import MemoryUserStore, MongoUserStore
from notesauth.errors import ConflictError


@pytest.fixture(params=["memory", "mongo"])
async def store(request, mongo_database):
    user_store = MemoryUserStore() if request.param == "memory" else MongoUserStore(mongo_database)
    await user_store.on_start()
    yield user_store
    await user_store.close()


def make_user(email="alice@example.com"):
    return User(email=email, password_hash="$2b$04$" + "x" * 53)


class TestUserStore:
    """Tests for reads and the two credential writes."""

    async def test_lookup_by_id_and_email(self, store):
        user = make_user()
        await store.insert(user)
        assert (await store.get_by_id(user.id)).email == "alice@example.com"
        assert (await store.get_by_email("alice@example.com")).id == user.id

    async def test_unknown_user(self, store):
        assert await store.get_by_id(uuid4()) is None
        assert await store.get_by_email("nobody@example.com") is None

    async def test_duplicate_email_is_conflict(self, store):
        await store.insert(make_user())
        with pytest.raises(ConflictError, match="already registered"):
            await store.insert(make_user())

    async def test_set_password_hash(self, store):
        user = make_user()
        await store.insert(user)
        assert await store.set_password_hash(user.id, "new-hash") is True
        assert (await store.get_by_id(user.id)).password_hash == "new-hash"

    async def test_mark_email_verified(self, store):
        user = make_user()
        await store.insert(user)
        assert await store.mark_email_verified(user.id) is True
        assert (await store.get_by_id(user.id)).email_verified is True

    async def test_writes_to_unknown_user_report_false(self, store):
        assert await store.set_password_hash(uuid4(), "new-hash") is False
        assert await store.mark_email_verified(uuid4()) is False
