"""
Cook Journal Backend — Password Hashing
=========================================

What:  One-way password hashing and verification via passlib's bcrypt scheme.
Why:   The plaintext is never stored; only the salted bcrypt hash is.
"""

from passlib.context import CryptContext

from cookjournal.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a password against a stored hash.

    A malformed stored hash counts as a mismatch rather than an error, so a
    corrupt row can never be used to tell accounts apart.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False
