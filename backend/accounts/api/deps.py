"""Shared API dependencies."""
from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from accounts.config import get_settings
from accounts.database import get_db
from accounts.models.user import User
from accounts.services.media import LocalMediaUploader, MediaUploader
from accounts.services.passwords import PasswordHasher
from accounts.services.sessions import SessionCoordinator
from accounts.services.store import SqlCredentialStore
from accounts.services.tokens import TokenIssuer

__all__ = [
    "get_db",
    "get_password_hasher",
    "get_token_issuer",
    "get_media_uploader",
    "get_session_coordinator",
    "get_current_user",
]

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_settings().token_config())


def get_media_uploader() -> MediaUploader:
    settings = get_settings()
    return LocalMediaUploader(settings.media_dir, settings.media_base_url)


def get_session_coordinator(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> SessionCoordinator:
    """Build a coordinator bound to the request's database session."""
    return SessionCoordinator(SqlCredentialStore(db), hasher, issuer, uploader)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> User:
    """Require a valid access token from the Authorization header or cookie."""
    if credentials is not None:
        token = credentials.credentials
    else:
        token = request.cookies.get(get_settings().access_cookie_name)
    return coordinator.authenticate(token)
