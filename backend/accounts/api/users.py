"""User account and session API endpoints."""
from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from accounts.api.deps import get_current_user, get_session_coordinator
from accounts.config import get_settings
from accounts.models.user import User
from accounts.schemas.auth import (
    AccountPublic,
    LoginResponse,
    MessageResponse,
    RegistrationData,
    TokenPairResponse,
    TokenRefresh,
    UserLogin,
)
from accounts.services.sessions import SessionCoordinator
from accounts.services.tokens import TokenPair

router = APIRouter(prefix="/users", tags=["users"])
settings = get_settings()


def set_token_cookies(response: Response, tokens: TokenPair) -> None:
    """Issue secure HttpOnly access and refresh cookies."""
    response.set_cookie(
        key=settings.access_cookie_name,
        value=tokens.access_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path=settings.cookie_path,
        max_age=settings.access_token_expire_minutes * 60,
    )
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=tokens.refresh_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path=settings.cookie_path,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
    )


def clear_token_cookies(response: Response) -> None:
    for name in (settings.access_cookie_name, settings.refresh_cookie_name):
        response.delete_cookie(
            key=name,
            path=settings.cookie_path,
            secure=settings.cookie_secure,
            httponly=True,
            samesite=settings.cookie_samesite,
        )


@router.post("/register", response_model=AccountPublic, status_code=status.HTTP_201_CREATED)
def register(
    full_name: str | None = Form(None, alias="fullName"),
    email: str | None = Form(None),
    username: str | None = Form(None),
    password: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    cover_image: UploadFile | None = File(None, alias="coverImage"),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Register a new user with an avatar and optional cover image."""
    data = RegistrationData(
        full_name=full_name,
        email=email,
        username=username,
        password=password,
    )
    return coordinator.register(data, avatar, cover_image)


@router.post("/login", response_model=LoginResponse)
def login(
    user_data: UserLogin,
    response: Response,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Login and get tokens."""
    result = coordinator.login(user_data.email, user_data.username, user_data.password)
    set_token_cookies(response, result.tokens)
    return LoginResponse(
        user=result.user,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Logout and invalidate the stored refresh token."""
    coordinator.logout(current_user)
    clear_token_cookies(response)
    return MessageResponse(message="User logged out successfully")


@router.post("/refresh-token", response_model=TokenPairResponse)
def refresh_tokens(
    request: Request,
    response: Response,
    body: TokenRefresh | None = None,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Rotate the refresh token and issue a new pair.

    A ``refreshToken`` sent in the body takes precedence over the cookie, so a
    client that still holds a stale cookie can refresh with the token it was
    last given. The cookie is used when the body carries no token.
    """
    presented = body.refresh_token if body is not None else None
    if not presented:
        presented = request.cookies.get(settings.refresh_cookie_name)

    tokens = coordinator.refresh(presented)
    set_token_cookies(response, tokens)
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.get("/me", response_model=AccountPublic)
def get_me(
    current_user: User = Depends(get_current_user),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Get the current user's public profile."""
    return coordinator.store.project_public(current_user)
