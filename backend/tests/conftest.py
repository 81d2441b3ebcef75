import io
import os
import sys

import pytest
from fastapi import UploadFile
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "fedcba9876543210fedcba9876543210fedcba9876543210fedcba9876543210")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from accounts.config import get_settings  # noqa: E402
from accounts.database import Base  # noqa: E402
from accounts.services.media import UploadedMedia  # noqa: E402
from accounts.services.passwords import PasswordHasher  # noqa: E402
from accounts.services.sessions import SessionCoordinator  # noqa: E402
from accounts.services.store import SqlCredentialStore  # noqa: E402
from accounts.services.tokens import TokenIssuer  # noqa: E402


class FakeUploader:
    """Records uploads and returns predictable URLs."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploaded: list[str] = []
        self.discarded: list[str] = []

    def upload(self, file):
        if file is None or not file.filename or self.fail:
            return None
        self.uploaded.append(file.filename)
        return UploadedMedia(url=f"https://media.example.com/{file.filename}")

    def discard(self, media):
        self.discarded.append(media.url)


def make_upload(filename: str = "avatar.png", content: bytes = b"\x89PNG fake image") -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=filename)


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    session = make_session_factory()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer():
    return TokenIssuer(get_settings().token_config())


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def store(db):
    return SqlCredentialStore(db)


@pytest.fixture
def coordinator(store, hasher, issuer, uploader):
    return SessionCoordinator(store, hasher, issuer, uploader)
