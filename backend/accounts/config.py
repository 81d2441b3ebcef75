"""Application configuration."""
from collections import Counter
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
import math
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEAK_SECRET_VALUES = {"changeme", "changeme-in-production", "secret", "password", "test"}


@dataclass(frozen=True)
class TokenConfig:
    """Signing material and lifetimes handed to the token issuer."""

    access_secret: str
    refresh_secret: str
    algorithm: str
    access_ttl: timedelta
    refresh_ttl: timedelta


def _check_secret(value: str, env_name: str) -> str:
    """Fail closed if a signing secret is weak or placeholder quality."""
    if not value:
        raise ValueError(f"{env_name} must be set.")

    if len(value) < 32:
        raise ValueError(f"{env_name} must be at least 32 characters.")

    lowered = value.lower()
    if lowered in WEAK_SECRET_VALUES or "changeme" in lowered:
        raise ValueError(f"{env_name} must not be a placeholder value.")

    counts = Counter(value)
    entropy_per_char = -sum((count / len(value)) * math.log2(count / len(value)) for count in counts.values())
    estimated_entropy_bits = entropy_per_char * len(value)
    if estimated_entropy_bits < 100:
        raise ValueError(f"{env_name} entropy is too low; use a cryptographically random value.")

    return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Accounts Service"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Database
    database_url: str = "sqlite:///./data/accounts.db"

    # Auth
    access_token_secret: str
    refresh_token_secret: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 10
    bcrypt_rounds: int = 12
    access_cookie_name: str = "accessToken"
    refresh_cookie_name: str = "refreshToken"
    cookie_secure: bool = True
    cookie_samesite: str = "lax"
    cookie_path: str = "/"

    # Media
    media_dir: Path = Path("./data/media")
    media_base_url: str = "/media"

    @field_validator("access_token_secret")
    @classmethod
    def validate_access_token_secret(cls, value: str) -> str:
        return _check_secret(value, "ACCESS_TOKEN_SECRET")

    @field_validator("refresh_token_secret")
    @classmethod
    def validate_refresh_token_secret(cls, value: str) -> str:
        return _check_secret(value, "REFRESH_TOKEN_SECRET")

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        if value < 4 or value > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16.")
        return value

    @field_validator("access_token_expire_minutes", "refresh_token_expire_days")
    @classmethod
    def validate_positive_ttl(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Token lifetimes must be at least 1.")
        return value

    @field_validator("cookie_samesite")
    @classmethod
    def validate_cookie_samesite(cls, value: str) -> str:
        lowered = value.lower()
        if lowered not in {"lax", "strict", "none"}:
            raise ValueError("COOKIE_SAMESITE must be one of lax, strict, none.")
        return lowered

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        # Access and refresh tokens are signed with independent keys.
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        return self

    def token_config(self) -> TokenConfig:
        """Build the immutable token configuration."""
        return TokenConfig(
            access_secret=self.access_token_secret,
            refresh_secret=self.refresh_token_secret,
            algorithm=self.algorithm,
            access_ttl=timedelta(minutes=self.access_token_expire_minutes),
            refresh_ttl=timedelta(days=self.refresh_token_expire_days),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
