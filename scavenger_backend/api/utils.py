"""
Credential helpers for the operator console.
"""

import secrets
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt

from scavenger_backend.database import utcnow

ADMIN_ROLE = "admin"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    # bcrypt has a 72-byte limit, so truncate if needed
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash. Malformed hashes never match."""
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_admin_token(
    username: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed token for an operator.

    Args:
        username: Operator name, stored as the subject
        secret_key: Secret key for signing
        algorithm: JWT signing algorithm
        expires_delta: Optional lifetime; tokens without one never expire

    Returns:
        JWT token string
    """
    now = utcnow()
    data = {
        "sub": username,
        "role": ADMIN_ROLE,
        "iat": now,
        "jti": secrets.token_hex(16),
    }
    if expires_delta:
        data["exp"] = now + expires_delta

    return jwt.encode(data, secret_key, algorithm=algorithm)


def decode_admin_token(token: str, secret_key: str, algorithm: str = "HS256") -> dict | None:
    """
    Decode and verify an operator token.

    Returns:
        Claims if the token is valid, unexpired and carries the admin role;
        None otherwise
    """
    try:
        claims = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None
    if claims.get("role") != ADMIN_ROLE:
        return None
    return claims
