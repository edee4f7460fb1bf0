"""
Server-side session records for issued refresh credentials.
Each principal keeps at most ``max_sessions`` live sessions; the least
recently active ones are evicted when a new session pushes it over.
"""

from datetime import datetime
from typing import Callable, List, Optional

import logfire

from beanie import PydanticObjectId
from beanie.operators import In

from models.helpers import utc_now
from models.security import Session

MAX_ACTIVE_SESSIONS = 5


class SessionStore:
    """Service for managing dashboard sessions."""

    def __init__(
        self,
        max_sessions: int = MAX_ACTIVE_SESSIONS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.max_sessions = max_sessions
        self.clock = clock

    async def create(
        self,
        user_id: str,
        access_token_hash: str,
        refresh_token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        """Persist a new session, then evict the excess beyond the cap."""
        now = self.clock()
        session = Session(
            user_id=user_id,
            access_token_hash=access_token_hash,
            refresh_token_hash=refresh_token_hash,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            expires_at=expires_at,
            last_activity=now,
            created_at=now,
        )
        await session.insert()
        await self.enforce_limit(user_id, keep=session.id)
        return session

    async def find_by_access_digest(self, token_hash: str) -> Optional[Session]:
        """Live session whose current access token hashes to ``token_hash``."""
        return await Session.find_one(
            Session.access_token_hash == token_hash,
            Session.expires_at > self.clock(),
        )

    async def find_by_refresh_digest(self, token_hash: str) -> Optional[Session]:
        """Live session whose refresh token hashes to ``token_hash``."""
        return await Session.find_one(
            Session.refresh_token_hash == token_hash,
            Session.expires_at > self.clock(),
        )

    async def list_active(self, user_id: str) -> List[Session]:
        """Live sessions of ``user_id``, most recently active first."""
        return (
            await Session.find(
                Session.user_id == user_id,
                Session.expires_at > self.clock(),
            )
            # ObjectIds grow with insertion order, so the newest wins timestamp ties
            .sort(-Session.last_activity, -Session.created_at, -Session.id)
            .to_list()
        )

    async def touch(self, session: Session, access_token_hash: Optional[str] = None) -> Session:
        """Record activity on ``session``, rotating its access digest if given."""
        # Partial update, so a concurrent refresh's access digest is never overwritten
        updates = {Session.last_activity: self.clock()}
        if access_token_hash is not None:
            updates[Session.access_token_hash] = access_token_hash
        await session.set(updates)
        return session

    async def revoke(self, session_id: PydanticObjectId) -> bool:
        """Delete one session. Returns whether it existed."""
        result = await Session.find(Session.id == session_id).delete()
        return bool(result and result.deleted_count)

    async def revoke_all(self, user_id: str) -> int:
        """Delete every session of ``user_id``, expired or not."""
        result = await Session.find(Session.user_id == user_id).delete()
        return result.deleted_count if result else 0

    async def enforce_limit(
        self, user_id: str, keep: Optional[PydanticObjectId] = None
    ) -> int:
        """Keep the ``max_sessions`` most recently active sessions, delete the rest.

        The session ``keep`` is never evicted, whatever its rank.

        Two concurrent logins may both see the cap respected and briefly
        leave one session too many; the next create trims it.
        """
        sessions = await self.list_active(user_id)
        if keep is not None:
            sessions = [s for s in sessions if s.id == keep] + [
                s for s in sessions if s.id != keep
            ]
        excess = sessions[self.max_sessions:]
        if not excess:
            return 0

        await Session.find(In(Session.id, [s.id for s in excess])).delete()
        logfire.info(
            "Evicted {count} old session(s) of user {user_id}",
            count=len(excess),
            user_id=user_id,
        )
        return len(excess)

    async def purge_expired(self) -> int:
        """Physically remove expired sessions. Reads never depend on this."""
        result = await Session.find(Session.expires_at <= self.clock()).delete()
        return result.deleted_count if result else 0
