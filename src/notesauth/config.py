from datetime import timedelta
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "mongodb://localhost:27017/notesauth"
    redis_url: str = "redis://localhost:6379/0"
    session_backend: Literal["redis", "mongo", "memory"] = "redis"  # where Session rows live
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    debug: bool = False
    secret_key: str = Field(..., min_length=32)  # HMAC key for token hashes
    secure_cookies: bool = False  # set in production behind HTTPS
    cors_origins: list[str] = []
    base_url: str = "http://localhost:8080"  # used to build links in outgoing mail
    session_ttl: timedelta = timedelta(days=30)
    verify_email_ttl: timedelta = timedelta(hours=72)
    magic_link_ttl: timedelta = timedelta(minutes=15)
    reset_password_ttl: timedelta = timedelta(minutes=60)
    bcrypt_rounds: int = Field(12, ge=4, le=31)
    min_password_length: int = 8
    shutdown_grace_seconds: int = 30  # in-flight requests get this long on shutdown

    model_config = {
        "env_file": [".env"],
        "env_prefix": "NOTESAUTH_",
        "extra": "ignore",
    }
