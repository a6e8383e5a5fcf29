"""
Recipe Share Backend — Authentication Routes
==============================================

    POST /api/v1/auth/signup   → 201, user + token
    POST /api/v1/auth/signin   → 200, user + token
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.database import UnitOfWork, get_db_session, get_unit_of_work
from recipeshare.deps import get_auth_service
from recipeshare.schemas.auth import SignInRequest, SignUpRequest
from recipeshare.schemas.common import ApiResponse, ErrorResponse
from recipeshare.schemas.user import AuthResult
from recipeshare.services.auth_service import AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=ApiResponse[AuthResult],
    responses={400: {"model": ErrorResponse}},
    summary="Register a new account",
)
async def sign_up(
    body: SignUpRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    service: AuthService = Depends(get_auth_service),
):
    result = await service.sign_up(uow, body.name, body.email, body.password)
    return ApiResponse(message="User registered successfully", data=result)


@router.post(
    "/signin",
    response_model=ApiResponse[AuthResult],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Exchange username/email and password for a token",
)
async def sign_in(
    body: SignInRequest,
    db: AsyncSession = Depends(get_db_session),
    service: AuthService = Depends(get_auth_service),
):
    result = await service.sign_in(db, body.username, body.email, body.password)
    return ApiResponse(message="User logged in successfully", data=result)
