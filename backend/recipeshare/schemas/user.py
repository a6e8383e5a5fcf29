"""
Recipe Share Backend — User Response Schemas
==============================================

UserProfile is what anyone may see; UserOut adds the email and is only
returned to the account owner (sign-up/sign-in) and to admins.
"""

import uuid
from datetime import datetime

from recipeshare.schemas.common import ResponseModel, id_field
from recipeshare.schemas.recipe import ImageRefOut


class UserProfile(ResponseModel):
    id: uuid.UUID = id_field()
    name: str
    username: str
    role: str
    bio: str
    location: str
    avatar: ImageRefOut
    cover_photo: ImageRefOut
    created_at: datetime


class UserOut(UserProfile):
    email: str


class AuthResult(UserOut):
    """UserOut plus the bearer token, returned by sign-up and sign-in."""

    token: str
