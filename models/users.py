from datetime import datetime

from pydantic import Field, field_serializer

from typing import Annotated, List, Optional

from beanie import Document, Indexed, PydanticObjectId

from .helpers import UserRole, utc_now


class User(Document):
    """Bot user profile as registered through the bot.

    The dashboard only reads this collection to resolve a principal and keeps
    the Telegram profile fields in sync on login.
    """
    telegram_id: Annotated[str, Indexed(unique=True), Field(serialization_alias="telegramId")]
    alias: Annotated[Optional[str], Field(default=None, max_length=64)]
    username: Annotated[Optional[str], Field(default=None)]
    first_name: Annotated[Optional[str], Field(default=None, serialization_alias="firstName")]
    last_name: Annotated[Optional[str], Field(default=None, serialization_alias="lastName")]
    role: Annotated[Optional[UserRole], Field(default=None)]  # None for regular members
    custom_roles: Annotated[
        List[str], Field(default=[], serialization_alias="customRoles")
    ]  # Names of Permissions documents granting extra permissions
    in_lobby: Annotated[bool, Field(default=False, serialization_alias="inLobby")]
    created_at: Annotated[datetime, Field(default_factory=utc_now, serialization_alias="createdAt")]

    @field_serializer("id")
    def convert_pydantic_object_id_to_string(self, id: PydanticObjectId):
        return str(id)

    class Settings:
        name = "users"
