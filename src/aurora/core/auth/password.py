"""Password hashing utilities using bcrypt."""

import bcrypt

MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes; current releases reject longer input
MAX_PASSWORD_BYTES = 72

# Verified against when the account does not exist so unknown emails cost the
# same as wrong passwords.
_DUMMY_PASSWORD = b"aurora-timing-equalizer"
_DUMMY_HASH = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt())


def _encode(password: str) -> bytes:
    return password.encode("utf-8")


def is_too_long(password: str) -> bool:
    """Whether bcrypt would refuse the password."""
    return len(_encode(password)) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string

    Raises:
        ValueError: If the password is longer than ``MAX_PASSWORD_BYTES``.
    """
    if is_too_long(password):
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    hashed = bcrypt.hashpw(_encode(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a hash.

    A missing or malformed hash never verifies, and neither does a password
    bcrypt cannot hash. Every failing path still performs one bcrypt check.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against

    Returns:
        True if password matches hash
    """
    if not plain_password:
        return False
    if not hashed_password or is_too_long(plain_password):
        bcrypt.checkpw(_DUMMY_PASSWORD, _DUMMY_HASH)
        return False
    try:
        return bcrypt.checkpw(_encode(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def password_problem(password: str) -> str | None:
    """Strength rule shared by registration, password change and reset.

    Returns:
        A message describing why the password is unacceptable, or None.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if is_too_long(password):
        return f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
    return None


def is_acceptable_password(password: str) -> bool:
    """Whether the password passes the strength rule."""
    return password_problem(password) is None
