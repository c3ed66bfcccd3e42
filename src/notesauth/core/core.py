from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient

from notesauth.config import Config
from notesauth.core.modules.mail.mailer import ConsoleMailer, Mailer
from notesauth.core.modules.password.hasher import PasswordHasher
from notesauth.core.modules.session.store import MemorySessionStore, MongoSessionStore, RedisSessionStore, SessionStore
from notesauth.core.modules.token.codec import TokenCodec
from notesauth.core.modules.token.store import MemoryTokenStore, MongoTokenStore, SingleUseTokenStore
from notesauth.core.modules.user.store import MemoryUserStore, MongoUserStore, UserStore
from notesauth.utils import now

logger = structlog.get_logger(__name__)


@dataclass
class Stores:
    """The three shared stores the auth core reads and writes."""

    users: UserStore
    sessions: SessionStore
    tokens: SingleUseTokenStore

    @classmethod
    def in_memory(cls, clock: Callable[[], datetime] = now) -> Stores:
        return cls(users=MemoryUserStore(), sessions=MemorySessionStore(clock), tokens=MemoryTokenStore())

    def all(self) -> list[UserStore | SessionStore | SingleUseTokenStore]:
        return [self.users, self.sessions, self.tokens]


class Service:
    """Base class for services working against the shared stores."""

    def __init__(self, stores: Stores) -> None:
        self.stores = stores
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from notesauth.core.modules.auth.service import AuthService  # noqa: PLC0415
    from notesauth.core.modules.token.service import TokenService  # noqa: PLC0415
    from notesauth.core.modules.user.service import UserService  # noqa: PLC0415

    user: UserService
    auth: AuthService
    token: TokenService

    def __init__(self, stores: Stores) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("user", "notesauth.core.modules.user.service", "UserService"),
            ("auth", "notesauth.core.modules.auth.service", "AuthService"),
            ("token", "notesauth.core.modules.token.service", "TokenService"),
        ]

        # Dynamically import and instantiate services
        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(stores)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in self._services:
            await service.on_stop()


class Core:
    """Container providing config, stores, crypto helpers and all service instances."""

    config: Config
    stores: Stores
    services: Services
    hasher: PasswordHasher
    codec: TokenCodec
    mailer: Mailer
    clock: Callable[[], datetime]

    def __init__(
        self,
        config: Config,
        stores: Stores | None = None,
        mailer: Mailer | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        """Initialize core with config and stores, and auto-register services.

        Without explicit stores, users and tokens go to MongoDB and sessions
        to the backend named by ``config.session_backend``.
        """
        self.config = config
        self.clock = clock
        self.mongo_client: AsyncMongoClient[dict[str, Any]] | None = None
        self.stores = stores if stores is not None else self._connect_stores(config)
        self.hasher = PasswordHasher(rounds=config.bcrypt_rounds)
        self.codec = TokenCodec(config.secret_key)
        self.mailer = mailer if mailer is not None else ConsoleMailer()
        self.services = Services(self.stores)
        self.services.set_core(self)

    def _connect_stores(self, config: Config) -> Stores:
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])

        sessions: SessionStore
        if config.session_backend == "redis":
            sessions = RedisSessionStore.from_url(config.redis_url)
        elif config.session_backend == "mongo":
            sessions = MongoSessionStore(database)
        else:
            sessions = MemorySessionStore(self.clock)

        return Stores(users=MongoUserStore(database), sessions=sessions, tokens=MongoTokenStore(database))

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Prepare stores, then start services."""
        for store in self.stores.all():
            await store.on_start()
        await self.services.start_all()
        logger.info("core_started", session_backend=type(self.stores.sessions).__name__)

    async def on_stop(self) -> None:
        """Stop services, then close store connections."""
        await self.services.stop_all()
        for store in self.stores.all():
            await store.close()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
        logger.info("core_stopped")
