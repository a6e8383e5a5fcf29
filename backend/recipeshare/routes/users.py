"""
Recipe Share Backend — User Routes
====================================

    GET /api/v1/user/username/{username}          public profile
    GET /api/v1/user                              all users (admin)
    GET /api/v1/user/saved-recipes                caller's saved recipes
    GET /api/v1/user/{username}/shared-recipes    recipes by a user

/saved-recipes is declared before /{username}/... so it is never taken
for a username.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.database import get_db_session
from recipeshare.deps import get_current_identity, get_user_service, require_admin
from recipeshare.schemas.common import ApiResponse, ErrorResponse
from recipeshare.schemas.recipe import RecipeOut
from recipeshare.schemas.user import UserOut, UserProfile
from recipeshare.security import Identity
from recipeshare.services.user_service import UserService

router = APIRouter(prefix="/api/v1/user", tags=["Users"])


@router.get(
    "/username/{username}",
    response_model=ApiResponse[UserProfile],
    responses={404: {"model": ErrorResponse}},
)
async def get_user(
    username: str,
    db: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    profile = await service.get_profile(db, username)
    return ApiResponse(message="User profile fetched successfully", data=profile)


@router.get(
    "",
    response_model=ApiResponse[List[UserOut]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def list_users(
    _: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    users = await service.list_users(db)
    return ApiResponse(message="Users fetched successfully", data=users)


@router.get(
    "/saved-recipes",
    response_model=ApiResponse[List[RecipeOut]],
    responses={401: {"model": ErrorResponse}},
)
async def saved_recipes(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    recipes = await service.saved_recipes(db, identity)
    return ApiResponse(message="Saved recipes fetched successfully", data=recipes)


@router.get(
    "/{username}/shared-recipes",
    response_model=ApiResponse[List[RecipeOut]],
    responses={404: {"model": ErrorResponse}},
)
async def shared_recipes(
    username: str,
    db: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    recipes = await service.shared_recipes(db, username)
    return ApiResponse(message="Shared recipes fetched successfully", data=recipes)
