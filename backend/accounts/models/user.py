"""User model."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text
from sqlalchemy.orm import validates

from accounts.database import Base
from accounts.services.passwords import PasswordHasher


def _now() -> str:
    return datetime.utcnow().isoformat()


class User(Base):
    """User account, including the single live refresh token."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar_url = Column(String(500), nullable=False)  # Externally hosted media
    cover_image_url = Column(String(500))
    refresh_token = Column(Text)  # Most recently issued refresh token, NULL when logged out
    created_at = Column(String(26), default=_now)
    updated_at = Column(String(26), default=_now, onupdate=_now)

    @validates("username", "email")
    def normalize_identifier(self, key: str, value: str) -> str:
        """Usernames and emails are unique case-insensitively."""
        return value.strip().lower() if value is not None else value

    @validates("full_name")
    def normalize_full_name(self, key: str, value: str) -> str:
        return value.strip() if value is not None else value

    def set_password(self, plaintext: str, hasher: PasswordHasher) -> None:
        """Hash and store a new password. The only writer of password_hash."""
        self.password_hash = hasher.hash(plaintext)
