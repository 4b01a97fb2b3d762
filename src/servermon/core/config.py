"""Process-wide server settings read from the environment once at startup."""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict


class Settings(BaseModel):
    """Immutable server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 4001
    client_url: str = "*"
    environment: str = "development"

    session_cookie: str = "session"
    session_secret_key: str = "secret-1"
    session_max_age: int = 7 * 24 * 60 * 60
    session_same_site: str = "none"

    body_limit_bytes: int = 50 * 1024 * 1024
    compression_min_size: int = 1024
    trusted_proxy_hosts: str = "127.0.0.1"

    sentry_dsn: str | None = None
    log_level: str = "INFO"

    @property
    def secure_cookies(self) -> bool:
        """Secure session cookies only in production."""
        return self.environment == "production"

    @property
    def allowed_origins(self) -> list[str]:
        return [self.client_url]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", defaults.port)),
            client_url=os.getenv("CLIENT_URL") or defaults.client_url,
            environment=os.getenv("NODE_ENV") or os.getenv("ENVIRONMENT", defaults.environment),
            session_secret_key=os.getenv("SESSION_SECRET_KEY", defaults.session_secret_key),
            sentry_dsn=os.getenv("SENTRY_DSN") or None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            trusted_proxy_hosts=os.getenv("TRUSTED_PROXY_HOSTS", defaults.trusted_proxy_hosts),
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings.from_env()
