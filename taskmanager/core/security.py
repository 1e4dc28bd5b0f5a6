"""Password hashing and JWT helpers."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pwdlib.hashers.bcrypt import BcryptHasher
from pydantic import BaseModel

from taskmanager.core.exceptions import AuthenticationError

DEFAULT_HASH_ROUNDS = 8
DEFAULT_ALGORITHM = "HS256"
DEFAULT_EXPIRES_IN = 2 * 24 * 60 * 60


class TokenData(BaseModel):
    """Decoded JWT payload."""

    sub: str
    iat: int
    exp: int
    jti: str


def get_password_hasher(rounds: int = DEFAULT_HASH_ROUNDS) -> PasswordHash:
    """Return a bcrypt PasswordHash with the given work factor.

    Instances are cached per work factor.
    """
    if not hasattr(get_password_hasher, "cached_instances"):
        get_password_hasher.cached_instances = {}
    if rounds not in get_password_hasher.cached_instances:
        get_password_hasher.cached_instances[rounds] = PasswordHash((BcryptHasher(rounds=rounds),))
    return get_password_hasher.cached_instances[rounds]


def hash_password(password: str, rounds: int = DEFAULT_HASH_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt.

    Args:
        password: Plain text password to hash
        rounds: bcrypt work factor

    Returns:
        Salted hash string that can be safely stored in the database
    """
    return get_password_hasher(rounds).hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash. Malformed hashes never verify."""
    try:
        return get_password_hasher().verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError, TypeError):
        return False


def create_access_token(
    subject: str,
    *,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> str:
    """Create a signed JWT for the given subject (user id).

    Every token carries a random `jti`, so two tokens issued to the same user in the same second still differ.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, *, secret: str, algorithm: str = DEFAULT_ALGORITHM) -> TokenData:
    """Decode and validate a JWT, returning a typed payload.

    Raises:
        AuthenticationError: If the signature is invalid, the token expired, or required claims are missing.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "exp", "iat", "jti"]},
        )
        return TokenData(**payload)
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except (jwt.InvalidTokenError, ValueError) as e:
        raise AuthenticationError() from e
