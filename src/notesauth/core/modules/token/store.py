"""Single-use token storage backends.

``consume`` is the replay guard: flipping ``used`` and reading the row happen
in one conditional update, so of two requests racing on the same token exactly
one gets the row back and the other sees it already used.
"""

from datetime import datetime, timedelta
from typing import Any, Protocol

from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from notesauth.core.modules.token.models import SingleUseToken, TokenPurpose
from notesauth.errors import TokenAlreadyUsed, TokenExpired, TokenNotFound
from notesauth.utils import as_utc

# Expired rows stay this long so a late click is reported as expired, not unknown
RECLAIM_AFTER = timedelta(days=7)


class SingleUseTokenStore(Protocol):
    async def on_start(self) -> None: ...

    async def close(self) -> None: ...

    async def insert(self, token: SingleUseToken) -> None: ...

    async def consume(self, token_hash: str, purpose: TokenPurpose, at: datetime) -> SingleUseToken: ...

    async def revoke_outstanding(self, purpose: TokenPurpose, subject: str, at: datetime) -> int: ...


def classify_failure(token: SingleUseToken | None, at: datetime) -> TokenNotFound | TokenExpired | TokenAlreadyUsed:
    """Explain why a conditional consume matched nothing."""
    if token is None:
        return TokenNotFound()
    if as_utc(at) > as_utc(token.expires_at):
        return TokenExpired()
    return TokenAlreadyUsed()


class MongoTokenStore:
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("auth_tokens")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # Purpose is part of the key: each flow has its own namespace
        await self._collection.create_index([("token_hash", 1), ("purpose", 1)], unique=True)
        # For revoking older links when a new one is issued
        await self._collection.create_index([("purpose", 1), ("subject", 1), ("used", 1)])
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=int(RECLAIM_AFTER.total_seconds()))

    async def close(self) -> None:
        """The MongoDB client is owned and closed by Core."""

    async def insert(self, token: SingleUseToken) -> None:
        document = token.model_dump()
        document["purpose"] = token.purpose.value
        await self._collection.insert_one(document)

    async def consume(self, token_hash: str, purpose: TokenPurpose, at: datetime) -> SingleUseToken:
        before = await self._collection.find_one_and_update(
            {"token_hash": token_hash, "purpose": purpose.value, "used": False, "expires_at": {"$gte": at}},
            {"$set": {"used": True, "used_at": at}},
            return_document=ReturnDocument.BEFORE,
        )
        if before is not None:
            return SingleUseToken.model_validate(before)

        current = await self._collection.find_one({"token_hash": token_hash, "purpose": purpose.value})
        raise classify_failure(SingleUseToken.model_validate(current) if current else None, at)

    async def revoke_outstanding(self, purpose: TokenPurpose, subject: str, at: datetime) -> int:
        result = await self._collection.update_many(
            {"purpose": purpose.value, "subject": subject, "used": False},
            {"$set": {"used": True, "used_at": at}},
        )
        return result.modified_count


class MemoryTokenStore:
    """Process-local token store; each method runs without awaiting, so it is atomic on the event loop."""

    def __init__(self) -> None:
        self._tokens: dict[tuple[str, TokenPurpose], SingleUseToken] = {}

    async def on_start(self) -> None:
        """Nothing to prepare."""

    async def close(self) -> None:
        self._tokens.clear()

    async def insert(self, token: SingleUseToken) -> None:
        key = (token.token_hash, token.purpose)
        if key in self._tokens:
            raise ValueError("Duplicate token hash")
        self._tokens[key] = token

    async def consume(self, token_hash: str, purpose: TokenPurpose, at: datetime) -> SingleUseToken:
        token = self._tokens.get((token_hash, purpose))
        if token is None or token.used or token.is_expired(at):
            raise classify_failure(token, at)
        self._tokens[(token_hash, purpose)] = token.model_copy(update={"used": True, "used_at": at})
        return token

    async def revoke_outstanding(self, purpose: TokenPurpose, subject: str, at: datetime) -> int:
        revoked = 0
        for key, token in self._tokens.items():
            if token.purpose == purpose and token.subject == subject and not token.used:
                self._tokens[key] = token.model_copy(update={"used": True, "used_at": at})
                revoked += 1
        return revoked
