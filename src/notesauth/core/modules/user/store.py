"""User storage backends.

Reads always hit the backend: session validation must see a password change
or a deleted account on the very next request.
"""

from typing import Any, Protocol
from uuid import UUID

from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from notesauth.core.modules.user.models import User
from notesauth.errors import ConflictError


class UserStore(Protocol):
    async def on_start(self) -> None: ...

    async def close(self) -> None: ...

    async def insert(self, user: User) -> None: ...

    async def get_by_id(self, user_id: UUID) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> bool: ...

    async def mark_email_verified(self, user_id: UUID) -> bool: ...


class MongoUserStore:
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("email", 1)], unique=True)

    async def close(self) -> None:
        """The MongoDB client is owned and closed by Core."""

    async def insert(self, user: User) -> None:
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise ConflictError("Email is already registered") from e

    async def get_by_id(self, user_id: UUID) -> User | None:
        return User.from_mongo(await self._collection.find_one({"_id": user_id}))

    async def get_by_email(self, email: str) -> User | None:
        return User.from_mongo(await self._collection.find_one({"email": email}))

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        result = await self._collection.update_one({"_id": user_id}, {"$set": {"password_hash": password_hash}})
        return result.matched_count > 0

    async def mark_email_verified(self, user_id: UUID) -> bool:
        result = await self._collection.update_one({"_id": user_id}, {"$set": {"email_verified": True}})
        return result.matched_count > 0


class MemoryUserStore:
    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}

    async def on_start(self) -> None:
        """Nothing to prepare."""

    async def close(self) -> None:
        self._users.clear()

    async def insert(self, user: User) -> None:
        if any(u.email == user.email for u in self._users.values()):
            raise ConflictError("Email is already registered")
        self._users[user.id] = user

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return next((u for u in self._users.values() if u.email == email), None)

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        return self._update(user_id, password_hash=password_hash)

    async def mark_email_verified(self, user_id: UUID) -> bool:
        return self._update(user_id, email_verified=True)

    def _update(self, user_id: UUID, **fields: Any) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        self._users[user_id] = user.model_copy(update=fields)
        return True
