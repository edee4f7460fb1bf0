"""
Security models for dashboard authentication and authorization.
"""
from datetime import datetime
from typing import Annotated, List, Optional

import pymongo
from pydantic import Field, field_serializer
from pymongo import IndexModel

from beanie import Document, Indexed, PydanticObjectId

from .helpers import AttemptType, utc_now


LOGIN_ATTEMPT_RETENTION_SECONDS = 24 * 60 * 60


class Permissions(Document):
    """Extra permissions granted to every user holding a role."""

    role: Annotated[str, Indexed(unique=True)]  # Role name, e.g. 'mod' or 'whitelist'
    permissions: Annotated[
        List[str], Field(default=[])
    ]  # Permission strings merged into the role's defaults

    class Settings:
        name = "permissions"


class Session(Document):
    """One active refresh credential issued to a user.

    Only SHA-256 digests of the tokens are stored. Documents are removed by
    the TTL index once ``expires_at`` passes; reads filter on it regardless.
    """

    user_id: Annotated[str, Indexed()]
    access_token_hash: Annotated[str, Indexed()]
    refresh_token_hash: Annotated[str, Indexed()]
    ip_address: Annotated[Optional[str], Field(default=None)]
    user_agent: Annotated[Optional[str], Field(default=None, max_length=512)]
    expires_at: datetime
    last_activity: Annotated[datetime, Field(default_factory=utc_now)]
    created_at: Annotated[datetime, Field(default_factory=utc_now)]

    @field_serializer("id")
    def convert_pydantic_object_id_to_string(self, id: PydanticObjectId):
        return str(id)

    class Settings:
        name = "sessions"
        indexes = [
            IndexModel([("expires_at", pymongo.ASCENDING)], expireAfterSeconds=0),
            IndexModel([("user_id", pymongo.ASCENDING), ("expires_at", pymongo.ASCENDING)]),
        ]


class LoginAttempt(Document):
    """Consecutive failed logins for one IP address or one user id."""

    identifier: Annotated[str, Indexed()]  # IP address or Telegram user id
    type: Annotated[AttemptType, Indexed()]
    attempts: Annotated[int, Field(default=1, ge=1)]
    last_attempt: Annotated[datetime, Field(default_factory=utc_now)]
    blocked_until: Annotated[Optional[datetime], Field(default=None)]
    created_at: Annotated[datetime, Field(default_factory=utc_now)]

    class Settings:
        name = "login_attempts"
        indexes = [
            IndexModel(
                [("identifier", pymongo.ASCENDING), ("type", pymongo.ASCENDING)],
                unique=True,
            ),
            # Stale records go away after a day of inactivity, blocked or not
            IndexModel(
                [("last_attempt", pymongo.ASCENDING)],
                expireAfterSeconds=LOGIN_ATTEMPT_RETENTION_SECONDS,
            ),
        ]
