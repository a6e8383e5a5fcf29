"""
Recipe Share Backend — Authentication Service
===============================================

What:  Sign-up and sign-in.
How:   Sign-up validates the input, then inside one transaction checks the
       email, allocates a unique handle from the display name, hashes the
       password and inserts the user. Sign-in looks the user up by exactly
       one of username or email and verifies the bcrypt hash.
       Both return the user plus a freshly issued JWT.
"""

import logging
import re
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.config import settings
from recipeshare.database import UnitOfWork, flush_changes
from recipeshare.exceptions import AuthenticationError, ValidationError
from recipeshare.models import ImageRef, User
from recipeshare.schemas.user import AuthResult, UserOut
from recipeshare.security import hash_password, issue_token, verify_password
from recipeshare.services.handles import allocate_handle

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72
NAME_LENGTH = (3, 30)


class AuthService:
    """Registers users and exchanges credentials for tokens."""

    async def sign_up(
        self,
        uow: UnitOfWork,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResult:
        """
        Registers a new creator account.

        Raises:
            ValidationError:     missing/invalid input, or email already registered
            AllocationExhausted: no free handle could be derived from the name
            DuplicateKeyError:   a concurrent sign-up took the email or handle
        """
        email = (email or "").strip().lower()
        name = (name or "").strip()

        if not email or not password:
            raise ValidationError("Please provide an email and password")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please provide a valid email address", field="email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                field="password",
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
                field="password",
            )
        low, high = NAME_LENGTH
        if not low <= len(name) <= high:
            raise ValidationError(
                f"Name must be between {low} and {high} characters",
                field="name",
            )

        password_hash = await hash_password(password)

        async def body(session: AsyncSession) -> User:
            existing = await session.scalar(select(User.id).where(User.email == email))
            if existing is not None:
                raise ValidationError("User already exists", field="email")

            async def handle_taken(candidate: str) -> bool:
                found = await session.scalar(
                    select(func.count()).select_from(User).where(User.username == candidate)
                )
                return bool(found)

            username = await allocate_handle(name, handle_taken)
            user = User(
                name=name,
                email=email,
                username=username,
                password_hash=password_hash,
                avatar=ImageRef(public_id="", url=settings.default_avatar),
                cover_photo=ImageRef(public_id="", url=settings.default_cover_photo),
            )
            session.add(user)
            await flush_changes(session)
            return user

        user = await uow.run(body)
        logger.info("User %s registered as '%s'", user.id, user.username)
        return _auth_result(user)

    async def sign_in(
        self,
        session: AsyncSession,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResult:
        """
        Exchanges credentials for a token.

        Raises:
            ValidationError:     neither or both of username/email, or no password
            AuthenticationError: unknown user or wrong password
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()

        if (not username and not email) or not password:
            raise ValidationError("Please provide username or email and password")
        if username and email:
            raise ValidationError("Please provide either username or email, not both")

        criteria = User.username == username if username else User.email == email
        user = await session.scalar(select(User).where(criteria))
        if user is None:
            raise AuthenticationError("User not found")

        if not await verify_password(password, user.password_hash):
            logger.info("Failed sign-in for user %s", user.id)
            raise AuthenticationError("Invalid credentials")

        logger.info("User %s signed in", user.id)
        return _auth_result(user)


def _auth_result(user: User) -> AuthResult:
    token = issue_token(user.id, user.role)
    return AuthResult(**UserOut.model_validate(user).model_dump(), token=token)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
