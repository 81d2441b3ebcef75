from dataclasses import replace
from datetime import timedelta

import pytest

from accounts.config import get_settings
from accounts.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from accounts.models.user import User
from accounts.schemas.auth import RegistrationData
from accounts.services.sessions import SessionCoordinator
from accounts.services.tokens import TokenIssuer, TokenKind, TokenSigningError

from conftest import FakeUploader, make_upload


def _data(**overrides) -> RegistrationData:
    values = {"full_name": "A B", "email": "a@x.com", "username": "ab", "password": "p1"}
    values.update(overrides)
    return RegistrationData(**values)


def _register(coordinator, **overrides):
    return coordinator.register(_data(**overrides), make_upload())


def test_register_stores_hash_and_returns_public_projection(coordinator, db, hasher):
    public = _register(coordinator)

    stored = db.query(User).filter(User.id == public.id).one()
    assert stored.password_hash != "p1"
    assert hasher.verify("p1", stored.password_hash)
    assert public.avatar_url == "https://media.example.com/avatar.png"
    assert public.cover_image_url is None
    assert not hasattr(public, "password_hash")
    assert not hasattr(public, "refresh_token")


def test_register_uploads_cover_image(coordinator, uploader):
    public = coordinator.register(_data(), make_upload("avatar.png"), make_upload("cover.jpg"))

    assert public.cover_image_url == "https://media.example.com/cover.jpg"
    assert uploader.uploaded == ["avatar.png", "cover.jpg"]


@pytest.mark.parametrize("field", ["full_name", "email", "username", "password"])
def test_register_requires_every_field(coordinator, db, field):
    with pytest.raises(ValidationError):
        _register(coordinator, **{field: "   "})
    assert db.query(User).count() == 0


def test_register_rejects_malformed_email(coordinator):
    with pytest.raises(ValidationError, match="Email"):
        _register(coordinator, email="not-an-email")


def test_register_twice_conflicts(coordinator, db):
    _register(coordinator)

    with pytest.raises(ConflictError):
        _register(coordinator, username="other")
    with pytest.raises(ConflictError):
        _register(coordinator, email="other@x.com")

    assert db.query(User).count() == 1


def test_register_requires_avatar(coordinator, db, uploader):
    with pytest.raises(ValidationError, match="Avatar"):
        coordinator.register(_data(), None)
    assert db.query(User).count() == 0
    assert uploader.uploaded == []


def test_register_fails_when_avatar_upload_fails(store, hasher, issuer, db):
    coordinator = SessionCoordinator(store, hasher, issuer, FakeUploader(fail=True))

    with pytest.raises(ValidationError, match="Avatar"):
        _register(coordinator)
    assert db.query(User).count() == 0


def test_conflict_is_checked_before_upload(coordinator, uploader):
    _register(coordinator)
    uploader.uploaded.clear()

    with pytest.raises(ConflictError):
        _register(coordinator)
    assert uploader.uploaded == []


def test_login_returns_tokens_for_account(coordinator, issuer):
    public = _register(coordinator)

    result = coordinator.login(None, "ab", "p1")

    assert result.user.id == public.id
    assert result.tokens.access_token
    assert result.tokens.refresh_token
    assert result.tokens.access_token != result.tokens.refresh_token
    assert issuer.verify(result.tokens.access_token, TokenKind.ACCESS)["sub"] == public.id


def test_login_by_email_is_case_insensitive(coordinator):
    public = _register(coordinator)

    assert coordinator.login("A@X.COM", None, "p1").user.id == public.id


def test_login_persists_refresh_token(coordinator, store):
    public = _register(coordinator)

    result = coordinator.login("a@x.com", None, "p1")

    assert store.find_by_id(public.id).refresh_token == result.tokens.refresh_token


def test_login_validation(coordinator):
    with pytest.raises(ValidationError):
        coordinator.login(None, None, "p1")
    with pytest.raises(ValidationError):
        coordinator.login(None, "ab", None)


def test_login_unknown_account(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.login(None, "nobody", "p1")


def test_login_wrong_password(coordinator, store):
    public = _register(coordinator)

    with pytest.raises(UnauthorizedError):
        coordinator.login(None, "ab", "wrong")
    assert store.find_by_id(public.id).refresh_token is None


def test_login_wraps_token_failures(coordinator, monkeypatch):
    _register(coordinator)

    def broken_issue(kind, account):
        raise TokenSigningError("no key")

    monkeypatch.setattr(coordinator.issuer, "issue", broken_issue)

    with pytest.raises(InternalError) as exc_info:
        coordinator.login(None, "ab", "p1")
    assert "no key" not in exc_info.value.message


def test_second_login_ends_first_session(coordinator):
    _register(coordinator)
    first = coordinator.login(None, "ab", "p1")
    coordinator.login(None, "ab", "p1")

    with pytest.raises(UnauthorizedError):
        coordinator.refresh(first.tokens.refresh_token)


def test_refresh_is_single_use(coordinator):
    _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    rotated = coordinator.refresh(login.tokens.refresh_token)

    assert rotated.refresh_token != login.tokens.refresh_token
    assert rotated.access_token != login.tokens.access_token
    with pytest.raises(UnauthorizedError):
        coordinator.refresh(login.tokens.refresh_token)
    assert coordinator.refresh(rotated.refresh_token).refresh_token


def test_refresh_after_logout_fails(coordinator, store):
    public = _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    coordinator.logout(store.find_by_id(public.id))

    with pytest.raises(UnauthorizedError):
        coordinator.refresh(login.tokens.refresh_token)


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_refresh_rejects_missing_or_malformed_token(coordinator, token):
    with pytest.raises(UnauthorizedError):
        coordinator.refresh(token)


def test_refresh_rejects_access_token(coordinator):
    _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    with pytest.raises(UnauthorizedError):
        coordinator.refresh(login.tokens.access_token)


def test_refresh_loses_race_when_token_rotated_concurrently(coordinator, store, monkeypatch):
    _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    real_rotate = store.rotate_refresh_token

    def rotate_after_competitor(account_id, expected, replacement):
        # A competing request rotates between our equality check and our write.
        assert real_rotate(account_id, expected, "competitor-token")
        return real_rotate(account_id, expected, replacement)

    monkeypatch.setattr(store, "rotate_refresh_token", rotate_after_competitor)

    with pytest.raises(UnauthorizedError):
        coordinator.refresh(login.tokens.refresh_token)


def test_authenticate_resolves_access_token(coordinator):
    public = _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    assert coordinator.authenticate(login.tokens.access_token).id == public.id
    with pytest.raises(UnauthorizedError):
        coordinator.authenticate(login.tokens.refresh_token)
    with pytest.raises(UnauthorizedError):
        coordinator.authenticate(None)


def test_register_fails_when_account_missing_after_create(coordinator, store, monkeypatch):
    monkeypatch.setattr(store, "find_by_id", lambda account_id: None)

    with pytest.raises(InternalError, match="User registration failed"):
        _register(coordinator)


def test_register_discards_uploads_when_create_loses_race(coordinator, store, uploader, db, monkeypatch):
    _register(coordinator)
    # A concurrent registration commits after our uniqueness check passed.
    monkeypatch.setattr(store, "find_by_email_or_username", lambda email, username: None)

    with pytest.raises(ConflictError):
        coordinator.register(_data(), make_upload("avatar2.png"), make_upload("cover2.jpg"))

    assert uploader.discarded == [
        "https://media.example.com/avatar2.png",
        "https://media.example.com/cover2.jpg",
    ]
    assert db.query(User).count() == 1


def test_refresh_for_deleted_account_is_unauthorized(coordinator, db):
    public = _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    db.delete(db.query(User).filter(User.id == public.id).one())
    db.commit()

    with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
        coordinator.refresh(login.tokens.refresh_token)


def test_refresh_with_expired_token_is_unauthorized(store, hasher, uploader):
    expired_config = replace(get_settings().token_config(), refresh_ttl=timedelta(seconds=-60))
    coordinator = SessionCoordinator(store, hasher, TokenIssuer(expired_config), uploader)
    _register(coordinator)
    login = coordinator.login(None, "ab", "p1")

    with pytest.raises(UnauthorizedError, match="expired"):
        coordinator.refresh(login.tokens.refresh_token)
