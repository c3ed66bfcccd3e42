"""Shared pytest fixtures."""

import asyncio
import copy
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from notesauth.app import App
from notesauth.config import Config
from notesauth.core.core import Core, Stores
from notesauth.core.modules.mail.mailer import MailMessage, OutboxMailer
from notesauth.core.modules.session.store import MongoSessionStore
from notesauth.core.modules.token.store import MongoTokenStore
from notesauth.core.modules.user.store import MongoUserStore
from notesauth.web.csrf import CSRF_HEADER
from notesauth.web.server import create_fastapi_app


class FakeClock:
    """Manually advanced clock shared by the services and the in-memory stores."""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


def token_from(message: MailMessage) -> str:
    """Pull the raw token out of an emailed link like ``https://host/#magic-link?token=...``."""
    fragment = urlsplit(message.link).fragment
    return parse_qs(fragment.split("?", 1)[1])["token"][0]


@pytest.fixture
def config():
    """Config for tests: in-memory sessions and the cheapest bcrypt cost."""
    return Config(
        _env_file=None,
        secret_key="test-secret-key-that-is-long-enough-0123456789",
        session_backend="memory",
        bcrypt_rounds=4,
        base_url="https://notes.example.com",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores(clock):
    return Stores.in_memory(clock)


@pytest.fixture
def outbox():
    return OutboxMailer()


@pytest.fixture
def core(config, stores, outbox, clock):
    return Core(config, stores=stores, mailer=outbox, clock=clock)


@pytest.fixture
def notes_app(config, stores, outbox, clock):
    return App(config, stores=stores, mailer=outbox, clock=clock)


@pytest.fixture
def fastapi_app(notes_app, config):
    return create_fastapi_app(notes_app, config)


def prime_csrf(client: TestClient) -> str:
    """Fetch a CSRF pair and send the header on every later request, like the browser client does."""
    token = client.get("/api/csrf").json()["token"]
    client.headers[CSRF_HEADER] = token
    return token


@pytest.fixture
def client(fastapi_app):
    with TestClient(fastapi_app) as test_client:
        prime_csrf(test_client)
        yield test_client


@pytest.fixture
def browser(fastapi_app):
    """Factory for additional clients with their own cookie jars (a second device or an attacker)."""

    def make(session_token: str | None = None) -> TestClient:
        other = TestClient(fastapi_app)
        if session_token is not None:
            other.cookies.set("session_token", session_token)
        prime_csrf(other)
        return other

    return make


@pytest.fixture
def mailed_token(outbox):
    """Return the raw token from the latest link mailed to an address."""

    def get(address: str) -> str:
        message = outbox.last_to(address)
        assert message is not None, f"no mail sent to {address}"
        return token_from(message)

    return get


@dataclass
class FakeResult:
    matched_count: int = 0
    modified_count: int = 0
    deleted_count: int = 0


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for field, condition in query.items():
        present = field in document
        value = document.get(field)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$gt":
                    ok = present and value > operand
                elif op == "$gte":
                    ok = present and value >= operand
                elif op == "$ne":
                    ok = value != operand
                else:
                    raise NotImplementedError(op)
                if not ok:
                    return False
        elif not present or value != condition:
            return False
    return True


class FakeCollection:
    """In-process stand-in for an AsyncCollection, covering the calls the stores make.

    Each call is one atomic step, as on a MongoDB server. Conditional updates
    yield to the event loop first so concurrent callers all reach the
    collection before any of them is applied.
    """

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[tuple[tuple[str, ...], dict[str, Any]]] = []

    async def create_index(self, keys: list[tuple[str, int]], **options: Any) -> str:
        fields = tuple(field for field, _ in keys)
        self.indexes.append((fields, options))
        return "_".join(fields)

    async def insert_one(self, document: dict[str, Any]) -> None:
        document.setdefault("_id", ObjectId())
        for fields in [("_id",), *(f for f, options in self.indexes if options.get("unique"))]:
            key = tuple(document.get(f) for f in fields)
            if any(tuple(d.get(f) for f in fields) == key for d in self.documents):
                raise DuplicateKeyError(f"E11000 duplicate key error index: {'_'.join(fields)}")
        self.documents.append(copy.deepcopy(document))

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        found = self._first(query)
        return copy.deepcopy(found) if found is not None else None

    async def find_one_and_update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        return_document: bool = ReturnDocument.BEFORE,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        found = self._first(query)
        if found is None:
            return None
        before = copy.deepcopy(found)
        found.update(update["$set"])
        return before if return_document == ReturnDocument.BEFORE else copy.deepcopy(found)

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> FakeResult:
        found = self._first(query)
        if found is None:
            return FakeResult()
        found.update(update["$set"])
        return FakeResult(matched_count=1, modified_count=1)

    async def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> FakeResult:
        matched = [d for d in self.documents if _matches(d, query)]
        for document in matched:
            document.update(update["$set"])
        return FakeResult(matched_count=len(matched), modified_count=len(matched))

    async def delete_one(self, query: dict[str, Any]) -> FakeResult:
        found = self._first(query)
        if found is None:
            return FakeResult()
        self.documents.remove(found)
        return FakeResult(deleted_count=1)

    async def delete_many(self, query: dict[str, Any]) -> FakeResult:
        kept = [d for d in self.documents if not _matches(d, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return FakeResult(deleted_count=deleted)

    def _first(self, query: dict[str, Any]) -> dict[str, Any] | None:
        return next((d for d in self.documents if _matches(d, query)), None)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def mongo_database():
    return FakeDatabase()


@pytest.fixture(params=["memory", "mongo"])
async def backend_stores(request, clock, mongo_database):
    """Stores on each backend; override ``stores`` with this to run a module against both."""
    if request.param == "memory":
        backend = Stores.in_memory(clock)
    else:
        backend = Stores(
            users=MongoUserStore(mongo_database),
            sessions=MongoSessionStore(mongo_database),
            tokens=MongoTokenStore(mongo_database),
        )
    for store in backend.all():
        await store.on_start()
    return backend
