"""Session storage backends.

Every backend keeps sessions keyed by token hash plus a per-user index so a
user's sessions can be revoked without scanning the whole store. Writes and
revocations use the backend's own atomic primitives, never a read-then-write
from the caller.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

import redis.asyncio as aioredis
from pymongo.asynchronous.database import AsyncDatabase

from notesauth.core.modules.session.models import Session
from notesauth.utils import as_utc, now


class SessionStore(Protocol):
    async def on_start(self) -> None: ...

    async def close(self) -> None: ...

    async def create(self, session: Session) -> None: ...

    async def get(self, token_hash: str) -> Session | None: ...

    async def delete(self, token_hash: str) -> bool: ...

    async def delete_all_for_user(self, user_id: UUID, keep: str | None = None) -> int: ...


def _ttl_seconds(expires_at: datetime) -> int:
    # Redis rejects zero or negative expiry values
    return max(1, int((as_utc(expires_at) - now()).total_seconds()))


class RedisSessionStore:
    """Sessions in Redis with native key expiry.

    Layout: ``session:<hash>`` holds the JSON session, ``user_sessions:<user_id>``
    is a set of hashes. The index may briefly reference expired sessions, it is
    only used to find keys to delete.
    """

    # Reads the index and deletes every session in it in one server-side step,
    # so a concurrent login cannot slip a session past a revocation.
    _DELETE_ALL_SCRIPT = """
local index = KEYS[1]
local prefix = ARGV[1]
local keep = ARGV[2]
local removed = 0
for _, token_hash in ipairs(redis.call('SMEMBERS', index)) do
  if token_hash ~= keep then
    removed = removed + redis.call('DEL', prefix .. token_hash)
    redis.call('SREM', index, token_hash)
  end
end
if redis.call('SCARD', index) == 0 then
  redis.call('DEL', index)
end
return removed
"""

    SESSION_PREFIX = "session:"
    INDEX_PREFIX = "user_sessions:"

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client
        self._delete_all = self.client.register_script(self._DELETE_ALL_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str, *, socket_timeout: float = 5.0) -> "RedisSessionStore":
        client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def _index_key(self, user_id: UUID) -> str:
        return f"{self.INDEX_PREFIX}{user_id}"

    async def on_start(self) -> None:
        await self.client.ping()

    async def close(self) -> None:
        await self.client.aclose()

    async def create(self, session: Session) -> None:
        ttl = _ttl_seconds(session.expires_at)
        index_key = self._index_key(session.user_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(f"{self.SESSION_PREFIX}{session.token_hash}", session.model_dump_json(), ex=ttl)
            pipe.sadd(index_key, session.token_hash)
            # Sessions share one fixed TTL, so the newest one outlives the rest of the index
            pipe.expire(index_key, ttl)
            await pipe.execute()

    async def get(self, token_hash: str) -> Session | None:
        raw = await self.client.get(f"{self.SESSION_PREFIX}{token_hash}")
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    async def delete(self, token_hash: str) -> bool:
        raw = await self.client.getdel(f"{self.SESSION_PREFIX}{token_hash}")
        if raw is None:
            return False
        # A stale index entry is harmless, delete_all_for_user skips missing keys
        session = Session.model_validate_json(raw)
        await self.client.srem(self._index_key(session.user_id), token_hash)
        return True

    async def delete_all_for_user(self, user_id: UUID, keep: str | None = None) -> int:
        removed = await self._delete_all(keys=[self._index_key(user_id)], args=[self.SESSION_PREFIX, keep or ""])
        return int(removed)


class MongoSessionStore:
    """Sessions in a MongoDB collection, reclaimed by a TTL index on expires_at."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # Index for user_id (for revoking all sessions of a user)
        await self._collection.create_index([("user_id", 1)])
        # TTL index: MongoDB removes the document once expires_at has passed
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    async def close(self) -> None:
        """The MongoDB client is owned and closed by Core."""

    async def create(self, session: Session) -> None:
        document = session.model_dump()
        document["_id"] = document.pop("token_hash")
        await self._collection.insert_one(document)

    async def get(self, token_hash: str) -> Session | None:
        document = await self._collection.find_one({"_id": token_hash})
        if document is None:
            return None
        document["token_hash"] = document.pop("_id")
        return Session.model_validate(document)

    async def delete(self, token_hash: str) -> bool:
        result = await self._collection.delete_one({"_id": token_hash})
        return result.deleted_count > 0

    async def delete_all_for_user(self, user_id: UUID, keep: str | None = None) -> int:
        query: dict[str, Any] = {"user_id": user_id}
        if keep is not None:
            query["_id"] = {"$ne": keep}
        result = await self._collection.delete_many(query)
        return result.deleted_count


class MemorySessionStore:
    """Process-local store for tests and single-process development.

    No method awaits between reading and writing its dicts, so each call is
    atomic with respect to other tasks on the event loop.
    """

    def __init__(self, clock: Callable[[], datetime] = now) -> None:
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._by_user: dict[UUID, set[str]] = {}

    async def on_start(self) -> None:
        """Nothing to prepare."""

    async def close(self) -> None:
        self._sessions.clear()
        self._by_user.clear()

    async def create(self, session: Session) -> None:
        self._sessions[session.token_hash] = session
        self._by_user.setdefault(session.user_id, set()).add(session.token_hash)

    async def get(self, token_hash: str) -> Session | None:
        session = self._sessions.get(token_hash)
        if session is not None and session.is_expired(self._clock()):
            self._discard(token_hash)
            return None
        return session

    async def delete(self, token_hash: str) -> bool:
        return self._discard(token_hash) is not None

    async def delete_all_for_user(self, user_id: UUID, keep: str | None = None) -> int:
        hashes = self._by_user.pop(user_id, set())
        removed = 0
        for token_hash in hashes:
            if token_hash == keep:
                continue
            if self._sessions.pop(token_hash, None) is not None:
                removed += 1
        if keep is not None and keep in hashes:
            self._by_user[user_id] = {keep}
        return removed

    def _discard(self, token_hash: str) -> Session | None:
        session = self._sessions.pop(token_hash, None)
        if session is not None:
            self._by_user.get(session.user_id, set()).discard(token_hash)
        return session
