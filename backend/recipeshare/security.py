"""
Recipe Share Backend — Tokens, Passwords and Caller Identity
==============================================================

What:  JWT issuing/decoding (PyJWT), password hashing (bcrypt) and the
       Identity value every service receives instead of a request object.
Why:   Services take the caller as an explicit argument, so authorization
       rules can be tested without HTTP and nothing reads ambient request
       state.
How:   Tokens are HS256-signed with settings.jwt_secret and carry
       {userId, role, iat, exp}. bcrypt work runs in a worker thread so a
       sign-in does not stall the event loop.
"""

import asyncio
import dataclasses
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from recipeshare.config import settings
from recipeshare.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Identity:
    """The authenticated caller: user id plus role ("admin" or "creator")."""

    id: uuid.UUID
    role: str = "creator"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ── JWT ───────────────────────────────────────────────────────────────────

def issue_token(user_id: uuid.UUID, role: str, now: Optional[datetime] = None) -> str:
    """
    Signs a bearer token for `user_id`.

    Args:
        user_id: Subject of the token
        role:    Role at issue time (the auth dependency re-reads it from the DB)
        now:     Issue time override, used by tests to mint expired tokens

    Returns:
        Compact JWT string
    """
    issued = now or datetime.now(timezone.utc)
    payload = {
        "userId": str(user_id),
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Identity:
    """
    Verifies a bearer token and returns the identity it names.

    Raises:
        AuthenticationError: expired, tampered, malformed, or missing claims
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "userId"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Unauthorized, token expired")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", e)
        raise AuthenticationError("Unauthorized, invalid token")

    try:
        user_id = uuid.UUID(str(payload["userId"]))
    except ValueError:
        raise AuthenticationError("Unauthorized, invalid token")

    return Identity(id=user_id, role=str(payload.get("role", "creator")))


# ── Passwords ─────────────────────────────────────────────────────────────

def _hash_sync(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _verify_sync(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Password hash with unexpected format encountered")
        return False


async def hash_password(password: str) -> str:
    """Hashes a password with bcrypt at settings.bcrypt_rounds."""
    return await asyncio.to_thread(_hash_sync, password)


async def verify_password(password: str, password_hash: str) -> bool:
    """Checks `password` against a stored bcrypt hash."""
    return await asyncio.to_thread(_verify_sync, password, password_hash)
