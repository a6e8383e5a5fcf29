"""
Recipe Share Backend — Authentication Request Schemas
=======================================================

All fields are optional at the schema level: AuthService checks presence
itself so clients get the same messages they always have
("Please provide an email and password") instead of a generic 400.
"""

from typing import Optional

from pydantic import BaseModel


class SignUpRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class SignInRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
