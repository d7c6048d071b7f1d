import logging

from passlib.context import CryptContext

logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)

# bcrypt_sha256 pre-hashes the secret, so passwords longer than bcrypt's
# 72-byte limit are accepted; plain bcrypt is kept to verify legacy hashes.
pwd_ctx = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
)

MIN_PASSWORD_LENGTH = 8


def hash_password(plain: str) -> str:
    """Return a bcrypt_sha256 hash for a plain password."""
    return pwd_ctx.hash(plain)


def check_password(plain: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    if not plain or not hashed:
        return False
    try:
        return pwd_ctx.verify(plain, hashed)
    except ValueError:
        return False


def password_problem(plain: str | None) -> str | None:
    """Return a user-facing reason the password is unacceptable, if any."""
    if not plain or len(plain) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    return None
