"""Authentication schemas."""
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


@dataclass
class RegistrationData:
    """Text fields of a registration form, before validation."""

    full_name: str | None
    email: str | None
    username: str | None
    password: str | None


class UserLogin(CamelModel):
    """User login request. Either email or username identifies the account."""

    email: str | None = None
    username: str | None = None
    password: str | None = None


class TokenRefresh(CamelModel):
    """Token refresh request (used when the cookie is unavailable)."""

    refresh_token: str | None = None


class AccountPublic(CamelModel):
    """Public projection of an account: no password hash, no refresh token."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str | None = None
    created_at: str
    updated_at: str


class LoginResponse(CamelModel):
    user: AccountPublic
    access_token: str
    refresh_token: str


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
