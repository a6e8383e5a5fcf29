"""
Recipe Share Backend — Request Dependencies
=============================================

What:  FastAPI dependencies resolving the caller's Identity and providing the
       service singletons.
Why:   Routes hand services an explicit Identity instead of letting them read
       request state; tests override the providers below to inject fakes.

Identity resolution:
    Authorization: Bearer <jwt>
      → decode_token()                      (401 on bad/expired token)
      → user must still exist               (401 "Unauthorized, user not found")
      → role is taken from the database, so a demotion takes effect without
        waiting for the token to expire
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.database import UnitOfWork, get_unit_of_work
from recipeshare.exceptions import AuthenticationError, AuthorizationError
from recipeshare.models import User
from recipeshare.security import Identity, decode_token
from recipeshare.services.auth_service import AuthService, auth_service
from recipeshare.services.image_cleanup import ImageCleanup
from recipeshare.services.image_service import image_service
from recipeshare.services.image_store import get_image_store
from recipeshare.services.recipe_service import RecipeService
from recipeshare.services.save_service import SaveService, save_service
from recipeshare.services.user_service import UserService, user_service

auth_scheme = HTTPBearer(auto_error=False)


async def get_optional_identity(
    cred: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Optional[Identity]:
    """
    The caller's identity, or None when no bearer token was sent.

    The role lookup runs in its own short transaction, so its connection is
    back in the pool before the route opens the session it writes with.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        return None

    claimed = decode_token(cred.credentials)

    async def lookup(session: AsyncSession) -> Optional[str]:
        return await session.scalar(select(User.role).where(User.id == claimed.id))

    role = await uow.run(lookup)
    if role is None:
        raise AuthenticationError("Unauthorized, user not found")
    return Identity(id=claimed.id, role=role)


async def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    """The caller's identity; 401 when unauthenticated."""
    if identity is None:
        raise AuthenticationError("Unauthorized, no token provided")
    return identity


async def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """The caller's identity; 403 unless the caller is an admin."""
    if not identity.is_admin:
        raise AuthorizationError("Access denied, admin only")
    return identity


# ── Service Providers ─────────────────────────────────────────────────────

@lru_cache
def get_recipe_service() -> RecipeService:
    store = get_image_store()
    return RecipeService(image_service, store, ImageCleanup(store))


def get_save_service() -> SaveService:
    return save_service


def get_auth_service() -> AuthService:
    return auth_service


def get_user_service() -> UserService:
    return user_service
