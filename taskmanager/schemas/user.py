from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional

from ..models.user import UserRole


class UserBase(BaseModel):
    username: str = Field(min_length=3, max_length=50)


class UserCreate(UserBase):
    password: str = Field(min_length=6, max_length=128)
    email: Optional[str] = None


class UserCredentials(BaseModel):
    username: str
    password: str


class User(BaseModel):
    """Public view of a user; the password hash is never exposed."""
    id: str
    username: str
    role: UserRole

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class RoleUpdate(BaseModel):
    role: UserRole


class TokenData(BaseModel):
    username: Optional[str] = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User
