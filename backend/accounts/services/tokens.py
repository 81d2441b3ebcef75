"""Access/refresh JWT issuing and verification."""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import uuid

from jose import ExpiredSignatureError, JWTError, jwt

from accounts.config import TokenConfig
from accounts.models.user import User


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """Base class for token failures."""


class TokenSigningError(TokenError):
    """The token could not be signed (bad key or algorithm)."""


class InvalidTokenError(TokenError):
    """Bad signature, malformed token, or wrong token type."""


class TokenExpiredError(InvalidTokenError):
    pass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """Signs and verifies access and refresh tokens.

    Access tokens carry the account's identity claims so ordinary requests can
    be authenticated without a store lookup. Refresh tokens carry only the
    subject. Each kind is signed with its own secret.
    """

    def __init__(self, config: TokenConfig):
        self._config = config

    def _secret(self, kind: TokenKind) -> str:
        if kind is TokenKind.ACCESS:
            return self._config.access_secret
        return self._config.refresh_secret

    def _claims(self, kind: TokenKind, account: User) -> dict:
        if kind is TokenKind.ACCESS:
            return {
                "sub": account.id,
                "username": account.username,
                "email": account.email,
                "fullName": account.full_name,
            }
        return {"sub": account.id}

    def issue(self, kind: TokenKind, account: User) -> str:
        """Create a signed token of the given kind for an account."""
        now = datetime.now(timezone.utc)
        ttl = self._config.access_ttl if kind is TokenKind.ACCESS else self._config.refresh_ttl
        to_encode = self._claims(kind, account)
        # jti keeps two tokens minted in the same second distinct.
        to_encode.update({
            "type": kind.value,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + ttl,
        })
        secret = self._secret(kind)
        if not secret:
            raise TokenSigningError(f"No signing secret configured for {kind.value} tokens")
        try:
            return jwt.encode(to_encode, secret, algorithm=self._config.algorithm)
        except JWTError as exc:
            raise TokenSigningError(f"Failed to sign {kind.value} token") from exc

    def issue_pair(self, account: User) -> TokenPair:
        return TokenPair(
            access_token=self.issue(TokenKind.ACCESS, account),
            refresh_token=self.issue(TokenKind.REFRESH, account),
        )

    def verify(self, token: str, kind: TokenKind) -> dict:
        """Decode a token and return its payload.

        Raises TokenExpiredError if the token is past its ``exp`` and
        InvalidTokenError for any other problem.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self._config.algorithm],
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise InvalidTokenError("Invalid token") from exc

        if payload.get("type") != kind.value:
            raise InvalidTokenError("Invalid token type")
        if not payload.get("sub"):
            raise InvalidTokenError("Invalid token payload")
        return payload
