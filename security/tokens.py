"""Issuing and verification of dashboard bearer tokens."""
import hashlib
import secrets

from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from models.helpers import TokenType, to_timestamp, utc_now
from schema.security import TokenPayload
from utils.exceptions import ConfigurationError

ALGORITHM = "HS256"
MIN_SECRET_LENGTH = 32

ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token, stored in place of the token itself.

    Tokens are high-entropy signed blobs, so a plain digest suffices and
    lookups compare digests with ordinary equality.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenIssuer:
    """Mints and verifies short-lived access and long-lived refresh tokens.

    Each token class has its own signing secret, so one can never be
    accepted in place of the other.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl: timedelta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
        clock: Callable[[], datetime] = utc_now,
    ):
        if not access_secret or len(access_secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"JWT_ACCESS_SECRET must be at least {MIN_SECRET_LENGTH} characters"
            )
        if not refresh_secret or len(refresh_secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"JWT_REFRESH_SECRET must be at least {MIN_SECRET_LENGTH} characters"
            )

        self._secrets = {
            TokenType.ACCESS: access_secret,
            TokenType.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenType.ACCESS: access_ttl,
            TokenType.REFRESH: refresh_ttl,
        }
        self.clock = clock

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._ttls[TokenType.ACCESS].total_seconds())

    def expiry_for(self, token_type: TokenType) -> datetime:
        """Absolute expiry of a token of ``token_type`` issued now."""
        return self.clock() + self._ttls[token_type]

    def _encode(self, token_type: TokenType, claims: dict) -> str:
        issued_at = self.clock()
        to_encode = claims.copy()
        to_encode.update(
            {
                "type": token_type.value,
                "jti": secrets.token_urlsafe(16),
                "iat": to_timestamp(issued_at),
                "exp": to_timestamp(issued_at + self._ttls[token_type]),
            }
        )
        return jwt.encode(to_encode, self._secrets[token_type], algorithm=ALGORITHM)

    def create_access_token(
        self, user_id: str, role: Optional[str] = None, permissions: Optional[list] = None
    ) -> str:
        """Creates a new access token carrying the user's role and permissions.

        Args:
            user_id (str): The Telegram id of the user.
            role (Optional[str], optional): The user's system role.
            permissions (Optional[list], optional): Resolved permission strings.

        Returns:
            str: The signed JWT.
        """
        return self._encode(
            TokenType.ACCESS,
            {"user_id": user_id, "role": role, "permissions": list(permissions or [])},
        )

    def create_refresh_token(self, user_id: str) -> str:
        """Creates a new refresh token for ``user_id``."""
        return self._encode(TokenType.REFRESH, {"user_id": user_id})

    def _decode(self, token: str, token_type: TokenType) -> TokenPayload | None:
        try:
            claims = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[ALGORITHM],
                options={"verify_exp": False},  # checked below against our clock
            )
            payload = TokenPayload.model_validate(claims)
        except (JWTError, ValidationError, AttributeError):
            return None

        if payload.type != token_type:
            return None

        #* Validate that the token has not expired
        if to_timestamp(self.clock()) >= payload.exp:
            return None

        return payload

    def verify_access_token(self, token: str) -> TokenPayload | None:
        """Decode and validate an access token.

        Returns:
            TokenPayload | None: Token data if valid, None for any kind of failure.
        """
        return self._decode(token, TokenType.ACCESS)

    def verify_refresh_token(self, token: str) -> TokenPayload | None:
        """Decode and validate a refresh token.

        Returns:
            TokenPayload | None: Token data if valid, None for any kind of failure.
        """
        return self._decode(token, TokenType.REFRESH)
