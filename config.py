"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
Sub-configs are composed into AppSettings by a model_validator so each
group can also be built on its own (tests, workers).
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "parley"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "parley"
    jwt_audience: str = "parley.api"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 2592000
    cookie_secure: bool = True

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @model_validator(mode="after")
    def _access_outlived_by_refresh(self) -> "JWTSettings":
        if self.access_token_ttl_seconds <= 0:
            raise ValueError("ACCESS_TOKEN_TTL_SECONDS must be positive")
        if self.access_token_ttl_seconds >= self.refresh_token_ttl_seconds:
            raise ValueError(
                "ACCESS_TOKEN_TTL_SECONDS must be shorter than REFRESH_TOKEN_TTL_SECONDS"
            )
        return self

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class TokenSettings(BaseSettings):
    """Lifetimes of the single-use tokens sent by email."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    password_reset_ttl_seconds: int = 900
    email_verification_ttl_seconds: int = 86400


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@parley.chat"
    zepto_from_name: str = "Parley"


class StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "parley/avatars"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "https://parley.chat"
    app_name: str = "parley"

    # Frontend origins allowed to send credentialed requests (cookies)
    cors_origins: list[str] = ["http://localhost:3000"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    tokens: Optional[TokenSettings] = None
    email: Optional[EmailSettings] = None
    storage: Optional[StorageSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.tokens is None:
            self.tokens = TokenSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.storage is None:
            self.storage = StorageSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        # Session cookies are never sent over plain HTTP in production
        if self.is_production:
            self.jwt.cookie_secure = True
            # JSON logs unless LOG_FORMAT was given explicitly
            if "log_format" not in self.logging.model_fields_set:
                self.logging.log_format = "json"

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
