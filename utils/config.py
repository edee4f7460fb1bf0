"""Runtime configuration read from the environment."""

import os

from typing import Annotated, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _split_csv(value: str | None) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class AuthSettings(BaseModel):
    """Settings for the dashboard authentication service.

    Secret strength is enforced where the secrets are used (see
    ``security.tokens.TokenIssuer``) so that a weak secret aborts startup.
    """

    bot_token: Annotated[str, Field(default="")]
    jwt_access_secret: Annotated[str, Field(default="")]
    jwt_refresh_secret: Annotated[str, Field(default="")]

    database_connection_string: Annotated[str, Field(default="mongodb://localhost:27017")]
    database_name: Annotated[str, Field(default="dashboard")]

    access_token_expire_minutes: Annotated[int, Field(default=15, gt=0)]
    refresh_token_expire_days: Annotated[int, Field(default=7, gt=0)]
    max_sessions_per_user: Annotated[int, Field(default=5, gt=0)]

    # 0 leaves expiry entirely to the MongoDB TTL indexes
    session_sweep_interval_seconds: Annotated[int, Field(default=0, ge=0)]

    trusted_proxies: Annotated[List[str], Field(default_factory=lambda: ["127.0.0.1"])]
    cors_allow_origins: Annotated[List[str], Field(default_factory=list)]

    logfire_write_token: Annotated[Optional[str], Field(default=None)]

    @classmethod
    def from_env(cls) -> "AuthSettings":
        """Build settings from environment variables (and a local .env file)."""
        return cls(
            bot_token=os.getenv("BOT_TOKEN", ""),
            jwt_access_secret=os.getenv("JWT_ACCESS_SECRET", ""),
            jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", ""),
            database_connection_string=os.getenv(
                "DATABASE_CONNECTION_STRING", "mongodb://localhost:27017"
            ),
            database_name=os.getenv("DATABASE_NAME", "dashboard"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")),
            refresh_token_expire_days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")),
            max_sessions_per_user=int(os.getenv("MAX_SESSIONS_PER_USER", "5")),
            session_sweep_interval_seconds=int(
                os.getenv("SESSION_SWEEP_INTERVAL_SECONDS", "0")
            ),
            trusted_proxies=_split_csv(os.getenv("TRUSTED_PROXIES", "127.0.0.1")),
            cors_allow_origins=_split_csv(os.getenv("CORS_ALLOW_ORIGINS")),
            logfire_write_token=os.getenv("LOGFIRE_WRITE_TOKEN") or None,
        )
