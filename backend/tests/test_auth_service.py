"""
Recipe Share Backend — Auth Service & Security Tests
======================================================

What we test:
    ✅ Sign-up: validation messages, handle allocation, defaults, token issued
    ✅ Sign-up: duplicate email rejected, colliding names get suffixed handles
    ✅ Sign-in: by username or email, wrong password, unknown user
    ✅ Tokens: round trip, expiry, tampering
    ✅ Password hashing: bcrypt verify, non-bcrypt hash
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import select

from recipeshare.config import settings
from recipeshare.exceptions import AuthenticationError, ValidationError
from recipeshare.models import User
from recipeshare.security import decode_token, hash_password, issue_token, verify_password
from recipeshare.services.auth_service import AuthService
from recipeshare.services.handles import SUFFIX_ALPHABET


class TestSignUp:

    def setup_method(self):
        self.service = AuthService()

    @pytest.mark.asyncio
    async def test_sign_up_creates_creator(self, uow, session_factory):
        result = await self.service.sign_up(uow, "Ada Lovelace", "Ada@Example.com", "correct horse")

        assert result.username == "adalovelace"
        assert result.email == "ada@example.com"
        assert result.role == "creator"
        assert result.avatar.url == settings.default_avatar
        assert decode_token(result.token).id == result.id

        async with session_factory() as session:
            user = await session.scalar(select(User).where(User.id == result.id))
        assert user.password_hash != "correct horse"
        assert await verify_password("correct horse", user.password_hash)

    @pytest.mark.asyncio
    async def test_same_name_gets_suffixed_handle(self, uow):
        first = await self.service.sign_up(uow, "Ada Lovelace", "ada1@example.com", "password-1")
        second = await self.service.sign_up(uow, "Ada Lovelace", "ada2@example.com", "password-2")

        assert first.username == "adalovelace"
        base, suffix = second.username.split(".")
        assert base == "adalovelace"
        assert set(suffix) <= set(SUFFIX_ALPHABET)

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, uow):
        await self.service.sign_up(uow, "Ada Lovelace", "ada@example.com", "password-1")

        with pytest.raises(ValidationError, match="User already exists"):
            await self.service.sign_up(uow, "Someone Else", "ADA@example.com", "password-2")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, email, password, message",
        [
            ("Ada", None, "password-1", "Please provide an email and password"),
            ("Ada", "ada@example.com", None, "Please provide an email and password"),
            ("Ada", "not-an-email", "password-1", "Please provide a valid email address"),
            ("Ada", "ada@example.com", "short", "Password must be at least 8 characters long"),
            ("Ada", "ada@example.com", "x" * 73, "Password must be at most 72 bytes long"),
            ("Al", "ada@example.com", "password-1", "Name must be between 3 and 30 characters"),
        ],
    )
    async def test_invalid_input(self, uow, name, email, password, message):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.sign_up(uow, name, email, password)

        assert exc_info.value.message == message


class TestSignIn:

    def setup_method(self):
        self.service = AuthService()

    @pytest.mark.asyncio
    async def test_sign_in_by_username_and_email(self, uow, db_session):
        created = await self.service.sign_up(uow, "Grace Hopper", "grace@example.com", "cobol-forever")

        by_name = await self.service.sign_in(db_session, created.username, None, "cobol-forever")
        by_email = await self.service.sign_in(db_session, None, "GRACE@example.com", "cobol-forever")

        assert by_name.id == by_email.id == created.id
        assert decode_token(by_name.token).id == created.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, uow, db_session):
        created = await self.service.sign_up(uow, "Grace Hopper", "grace@example.com", "cobol-forever")

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await self.service.sign_in(db_session, created.username, None, "fortran")

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(AuthenticationError, match="User not found"):
            await self.service.sign_in(db_session, "nobody", None, "whatever-1")

    @pytest.mark.asyncio
    async def test_both_identifiers_rejected(self, db_session):
        with pytest.raises(ValidationError, match="either username or email, not both"):
            await self.service.sign_in(db_session, "grace", "grace@example.com", "cobol-forever")

    @pytest.mark.asyncio
    async def test_missing_password(self, db_session):
        with pytest.raises(ValidationError, match="Please provide username or email and password"):
            await self.service.sign_in(db_session, "grace", None, None)


class TestTokens:

    def test_round_trip(self):
        user_id = uuid.uuid4()

        identity = decode_token(issue_token(user_id, "admin"))

        assert identity.id == user_id
        assert identity.is_admin

    def test_expired_token(self):
        issued = datetime.now(timezone.utc) - timedelta(days=settings.jwt_expires_days + 1)
        token = issue_token(uuid.uuid4(), "creator", now=issued)

        with pytest.raises(AuthenticationError, match="token expired"):
            decode_token(token)

    def test_wrong_secret(self):
        token = jwt.encode(
            {"userId": str(uuid.uuid4()), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(AuthenticationError, match="invalid token"):
            decode_token(token)

    def test_missing_user_claim(self):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthenticationError, match="invalid token"):
            decode_token(token)

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            decode_token("not.a.jwt")


class TestPasswords:

    @pytest.mark.asyncio
    async def test_hash_and_verify(self):
        hashed = await hash_password("correct horse")

        assert hashed.startswith("$2")
        assert await verify_password("correct horse", hashed)
        assert not await verify_password("battery staple", hashed)

    @pytest.mark.asyncio
    async def test_non_bcrypt_hash_never_matches(self):
        assert not await verify_password("anything", "plain-text")
