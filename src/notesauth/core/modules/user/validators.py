import re

from notesauth.core.modules.password.hasher import MAX_PASSWORD_BYTES
from notesauth.errors import ValidationError

# Deliberately loose: one @, no whitespace, a dot in the domain
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_EMAIL_LENGTH = 254


def validate_email(email: str) -> None:
    """Validate email address shape.

    Raises:
        ValidationError: If the address is empty, too long or malformed
    """
    if not email or len(email) > MAX_EMAIL_LENGTH or not EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email address")


def validate_password(password: str, min_length: int = 8) -> None:
    """Validate password meets requirements.

    Requirements:
    - Minimum length of ``min_length`` characters
    - At most 72 bytes when UTF-8 encoded (bcrypt ignores the rest)
    - No leading or trailing whitespace

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

    if password != password.strip():
        raise ValidationError("Password cannot start or end with whitespace")
