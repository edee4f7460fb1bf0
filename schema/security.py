"""Defines schema of requests and responses related to security"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from typing import Annotated, List, Optional

from models.helpers import TokenType


class TelegramAuthRequest(BaseModel):
    """Login data posted by the Telegram Login Widget.

    Extra fields are kept because Telegram signs every field it sends.
    """

    model_config = ConfigDict(extra="allow")

    id: Annotated[int, Field(gt=0)]
    first_name: Annotated[str, Field(min_length=1)]
    last_name: Annotated[Optional[str], Field(default=None)]
    username: Annotated[Optional[str], Field(default=None)]
    photo_url: Annotated[Optional[str], Field(default=None)]
    auth_date: Annotated[int, Field(gt=0)]  # Unix timestamp of the Telegram login
    hash: Annotated[str, Field(min_length=1)]  # HMAC-SHA256 hex signature


class RefreshTokenRequest(BaseModel):
    """Model for refresh token request."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Annotated[str, Field(min_length=1, alias="refreshToken")]


class TokenPayload(BaseModel):
    """Model representing data contained in an access or refresh token."""

    user_id: str
    type: TokenType
    jti: str  # Unique token identifier
    iat: int
    exp: int
    role: Optional[str] = None
    permissions: List[str] = []


class AuthenticatedPrincipal(BaseModel):
    """Caller resolved from a bearer token with a live session."""

    user_id: str
    role: Optional[str] = None
    permissions: List[str] = []
    session_id: Optional[str] = None


class AuthUser(BaseModel):
    """Profile returned alongside tokens."""

    id: str
    alias: Optional[str] = None
    username: Optional[str] = None
    first_name: Annotated[Optional[str], Field(default=None, serialization_alias="firstName")]
    last_name: Annotated[Optional[str], Field(default=None, serialization_alias="lastName")]
    role: Optional[str] = None
    permissions: List[str] = []


class CurrentUser(AuthUser):
    """Profile returned by the ``/me`` endpoint."""

    in_lobby: Annotated[bool, Field(default=False, serialization_alias="inLobby")]
    join_date: Annotated[Optional[datetime], Field(default=None, serialization_alias="joinDate")]


class TokenPair(BaseModel):
    """Model representing both access and refresh tokens."""

    access_token: Annotated[str, Field(serialization_alias="accessToken")]
    refresh_token: Annotated[str, Field(serialization_alias="refreshToken")]
    expires_in: Annotated[int, Field(serialization_alias="expiresIn")]  # Access token expiry in seconds
    user: AuthUser


class AccessToken(BaseModel):
    """Model representing a freshly issued access token."""

    access_token: Annotated[str, Field(serialization_alias="accessToken")]
    expires_in: Annotated[int, Field(serialization_alias="expiresIn")]


class SessionInfo(BaseModel):
    """Active session as shown to its owner."""

    id: str
    ip_address: Annotated[Optional[str], Field(default=None, serialization_alias="ipAddress")]
    user_agent: Annotated[Optional[str], Field(default=None, serialization_alias="userAgent")]
    created_at: Annotated[datetime, Field(serialization_alias="createdAt")]
    last_activity: Annotated[datetime, Field(serialization_alias="lastActivity")]
    expires_at: Annotated[datetime, Field(serialization_alias="expiresAt")]
    current: bool = False


class BlockedIdentifier(BaseModel):
    """Identifier currently locked out, for admin monitoring."""

    identifier: str
    type: str
    attempts: int
    last_attempt: Annotated[datetime, Field(serialization_alias="lastAttempt")]
    blocked_until: Annotated[datetime, Field(serialization_alias="blockedUntil")]


class MessageResponse(BaseModel):
    """Plain success envelope."""

    success: bool = True
    message: str


class LoginResponse(MessageResponse):
    data: TokenPair


class RefreshResponse(MessageResponse):
    data: AccessToken


class CurrentUserResponse(BaseModel):
    success: bool = True
    data: CurrentUser


class SessionListResponse(BaseModel):
    success: bool = True
    data: List[SessionInfo]


class BlockedListResponse(BaseModel):
    success: bool = True
    data: List[BlockedIdentifier]


class ErrorResponse(BaseModel):
    """Body of every failed request."""

    success: bool = False
    message: str
