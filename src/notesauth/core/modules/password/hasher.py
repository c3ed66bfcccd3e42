"""bcrypt password hashing.

The stored string is bcrypt's modular-crypt format (``$2b$<cost>$<salt+digest>``),
so it carries its own algorithm and cost. Raising the configured cost never
breaks verification of older hashes; ``needs_rehash`` tells the caller when a
stored hash should be upgraded after a successful login.
"""

import bcrypt
import structlog

from notesauth.errors import HashingError

logger = structlog.get_logger(__name__)

# bcrypt ignores input past 72 bytes, longer passwords are rejected at validation
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, adaptive one-way hashing of user passwords."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Verified against when the email is unknown so both login failures cost one bcrypt run
        self._dummy_hash = self.hash("notesauth-timing-equalizer")

    def hash(self, password: str) -> str:
        try:
            return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, OSError) as e:
            logger.exception("password_hash_failed")
            raise HashingError("Password hashing failed") from e

    def verify(self, password_hash: str, password: str) -> bool:
        """Return True if the password matches. A malformed hash is a mismatch, not an error."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("password_verify_rejected_input")
            return False

    def verify_dummy(self, password: str) -> bool:
        """Burn one verification so callers take the same time whether or not the user exists."""
        self.verify(self._dummy_hash, password)
        return False

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            cost = int(password_hash.split("$")[2])
        except (IndexError, ValueError):
            return True
        return cost != self.rounds
