"""Credential store: persistence of account records."""
import logging
from typing import Protocol

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from accounts.errors import ConflictError
from accounts.models.user import User
from accounts.schemas.auth import AccountPublic

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Storage operations the session layer depends on."""

    def find_by_email_or_username(self, email: str | None, username: str | None) -> User | None: ...

    def find_by_id(self, account_id: str) -> User | None: ...

    def create(self, account: User) -> User: ...

    def update_refresh_token(self, account_id: str, token: str | None) -> None: ...

    def rotate_refresh_token(self, account_id: str, expected: str, replacement: str) -> bool: ...

    def project_public(self, account: User) -> AccountPublic: ...


def _normalize(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


class SqlCredentialStore:
    """CredentialStore backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email_or_username(self, email: str | None, username: str | None) -> User | None:
        """Find the account matching either identifier."""
        conditions = []
        email = _normalize(email)
        username = _normalize(username)
        if email:
            conditions.append(User.email == email)
        if username:
            conditions.append(User.username == username)
        if not conditions:
            return None
        return self.db.query(User).filter(or_(*conditions)).first()

    def find_by_id(self, account_id: str) -> User | None:
        return self.db.query(User).filter(User.id == account_id).first()

    def create(self, account: User) -> User:
        """Insert a new account. Raises ConflictError on a duplicate username/email."""
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info(f"Rejected duplicate account for username={account.username}")
            raise ConflictError() from exc
        self.db.refresh(account)
        return account

    def update_refresh_token(self, account_id: str, token: str | None) -> None:
        """Unconditionally replace (or clear) the stored refresh token."""
        self.db.query(User).filter(User.id == account_id).update(
            {"refresh_token": token},
            synchronize_session=False,
        )
        self.db.commit()

    def rotate_refresh_token(self, account_id: str, expected: str, replacement: str) -> bool:
        """Swap the refresh token only if it still equals ``expected``.

        The compare and the write happen in one UPDATE statement, so of two
        concurrent rotations presenting the same token only one succeeds.
        """
        updated = self.db.query(User).filter(
            User.id == account_id,
            User.refresh_token == expected,
        ).update(
            {"refresh_token": replacement},
            synchronize_session=False,
        )
        self.db.commit()
        return updated == 1

    def project_public(self, account: User) -> AccountPublic:
        return AccountPublic.model_validate(account)
