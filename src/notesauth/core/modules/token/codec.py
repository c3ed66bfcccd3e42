"""Opaque bearer tokens and their lookup hashes.

Raw tokens go to the client (cookie or emailed link) and are never stored.
Stores key everything by HMAC-SHA256(secret_key, raw), so a leaked store
holds nothing that can be replayed as a cookie, and the digest cannot be
recomputed without the server key.
"""

import hashlib
import hmac
import secrets

# 32 random bytes, 256 bits of entropy
TOKEN_BYTES = 32


class TokenCodec:
    def __init__(self, secret_key: str) -> None:
        self._key = secret_key.encode("utf-8")

    def generate(self) -> tuple[str, str]:
        """Return (raw, token_hash). raw uses the URL and cookie safe base64 alphabet."""
        raw = secrets.token_urlsafe(TOKEN_BYTES)
        return raw, self.hash(raw)

    def hash(self, raw: str) -> str:
        return hmac.new(self._key, raw.encode("utf-8"), hashlib.sha256).hexdigest()
