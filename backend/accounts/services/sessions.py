"""Registration, login, logout and token refresh.

The coordinator owns the session-token lifecycle. Each account keeps exactly
one live refresh token (``User.refresh_token``):

- login issues a new access/refresh pair and overwrites the stored refresh
  token, ending any earlier session;
- refresh accepts a token only if it verifies *and* equals the stored value,
  then rotates it, so a superseded token is rejected even though its
  signature is still valid;
- logout clears the stored token.
"""
from dataclasses import dataclass
import logging
import secrets

from fastapi import UploadFile
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from accounts.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from accounts.models.user import User
from accounts.schemas.auth import AccountPublic, RegistrationData
from accounts.services.media import MediaUploader
from accounts.services.passwords import PasswordHasher
from accounts.services.store import CredentialStore
from accounts.services.tokens import (
    InvalidTokenError,
    TokenExpiredError,
    TokenIssuer,
    TokenKind,
    TokenPair,
    TokenSigningError,
)

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class LoginResult:
    user: AccountPublic
    tokens: TokenPair


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class SessionCoordinator:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        uploader: MediaUploader,
    ):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.uploader = uploader

    def register(
        self,
        data: RegistrationData,
        avatar: UploadFile | None,
        cover_image: UploadFile | None = None,
    ) -> AccountPublic:
        """Create an account and return its public projection."""
        if any(_blank(field) for field in (data.full_name, data.email, data.username, data.password)):
            raise ValidationError("All fields are required")
        try:
            _email_adapter.validate_python(data.email.strip())
        except PydanticValidationError as exc:
            raise ValidationError("Email address is not valid") from exc

        if self.store.find_by_email_or_username(data.email, data.username):
            raise ConflictError()

        if avatar is None:
            raise ValidationError("Avatar file is required")
        avatar_media = self.uploader.upload(avatar)
        if avatar_media is None:
            raise ValidationError("Avatar file is required")
        cover_media = self.uploader.upload(cover_image)

        user = User(
            username=data.username,
            email=data.email,
            full_name=data.full_name,
            avatar_url=avatar_media.url,
            cover_image_url=cover_media.url if cover_media else None,
        )
        try:
            user.set_password(data.password, self.hasher)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        try:
            created = self.store.create(user)
        except ConflictError:
            # Lost a race with a concurrent registration after the uniqueness check.
            for media in (avatar_media, cover_media):
                if media is not None:
                    self.uploader.discard(media)
            raise

        stored = self.store.find_by_id(created.id)
        if stored is None:
            logger.error(f"Account {created.id} missing right after creation")
            raise InternalError("User registration failed")

        logger.info(f"Registered account {stored.id} ({stored.username})")
        return self.store.project_public(stored)

    def login(
        self,
        email: str | None,
        username: str | None,
        password: str | None,
    ) -> LoginResult:
        """Verify credentials, then issue and persist a fresh token pair."""
        if _blank(email) and _blank(username):
            raise ValidationError("Email or username is required")
        if not password:
            raise ValidationError("Password is required")

        user = self.store.find_by_email_or_username(email, username)
        if user is None:
            raise NotFoundError()

        if not self.hasher.verify(password, user.password_hash):
            logger.info(f"Failed login for account {user.id}")
            raise UnauthorizedError("Invalid user credentials")

        tokens = self._issue_pair(user)
        self.store.update_refresh_token(user.id, tokens.refresh_token)

        logger.info(f"Account {user.id} logged in")
        return LoginResult(user=self.store.project_public(user), tokens=tokens)

    def logout(self, user: User) -> None:
        """Invalidate the account's refresh token."""
        self.store.update_refresh_token(user.id, None)
        logger.info(f"Account {user.id} logged out")

    def refresh(self, presented_token: str | None) -> TokenPair:
        """Exchange a live refresh token for a new pair, retiring the old one."""
        if not presented_token:
            raise UnauthorizedError("Unauthorized request")

        try:
            payload = self.issuer.verify(presented_token, TokenKind.REFRESH)
        except TokenExpiredError as exc:
            raise UnauthorizedError("Refresh token has expired") from exc
        except InvalidTokenError as exc:
            raise UnauthorizedError("Invalid refresh token") from exc

        user = self.store.find_by_id(payload["sub"])
        if user is None:
            raise UnauthorizedError("Invalid refresh token")

        if user.refresh_token is None or not secrets.compare_digest(
            presented_token.encode("utf-8"), user.refresh_token.encode("utf-8")
        ):
            logger.warning(f"Rejected superseded refresh token for account {user.id}")
            raise UnauthorizedError("Refresh token is expired or used")

        tokens = self._issue_pair(user)
        if not self.store.rotate_refresh_token(user.id, presented_token, tokens.refresh_token):
            logger.warning(f"Concurrent refresh lost the race for account {user.id}")
            raise UnauthorizedError("Refresh token is expired or used")

        logger.info(f"Rotated refresh token for account {user.id}")
        return tokens

    def authenticate(self, access_token: str | None) -> User:
        """Resolve an access token to its account."""
        if not access_token:
            raise UnauthorizedError("Unauthorized request")
        try:
            payload = self.issuer.verify(access_token, TokenKind.ACCESS)
        except InvalidTokenError as exc:
            raise UnauthorizedError("Invalid access token") from exc

        user = self.store.find_by_id(payload["sub"])
        if user is None:
            raise UnauthorizedError("Invalid access token")
        return user

    def _issue_pair(self, user: User) -> TokenPair:
        try:
            return self.issuer.issue_pair(user)
        except TokenSigningError as exc:
            logger.exception(f"Token generation failed for account {user.id}")
            raise InternalError("Something went wrong while generating access and refresh tokens") from exc
