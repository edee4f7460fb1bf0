"""Dashboard authentication service.

Composes signature verification, lockout tracking, token issuing and the
session store into the login / refresh / logout flows used by the auth router.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional

import logfire

from models.helpers import AttemptType, TokenType, to_timestamp, utc_now
from models.security import LoginAttempt, Session
from models.users import User

from schema.security import (
    AccessToken,
    AuthenticatedPrincipal,
    AuthUser,
    CurrentUser,
    TokenPair,
    TokenPayload,
)

from security.bruteforce import BruteForceGuard
from security.permissions import has_dashboard_access, resolve_permissions
from security.sessions import SessionStore
from security.telegram import VerificationReason, extract_user_info, verify_telegram_auth
from security.tokens import TokenIssuer, hash_token

from utils import audit
from utils.config import AuthSettings
from utils.exceptions import (
    ConfigurationError,
    InsufficientPermission,
    InvalidSignature,
    InvalidToken,
    PrincipalNotRegistered,
    RateLimited,
    StaleAssertion,
)


class AuthService:
    """Entry point for every dashboard authentication operation."""

    def __init__(
        self,
        bot_token: str,
        token_issuer: TokenIssuer,
        session_store: SessionStore,
        guard: BruteForceGuard,
        clock: Callable[[], datetime] = utc_now,
    ):
        if not bot_token:
            raise ConfigurationError("BOT_TOKEN not configured")
        self.bot_token = bot_token
        self.tokens = token_issuer
        self.sessions = session_store
        self.guard = guard
        self.clock = clock

    async def _check_not_blocked(self, identifier: str, attempt_type: AttemptType) -> None:
        status = await self.guard.is_blocked(identifier, attempt_type)
        if status.blocked:
            audit.log_brute_force_block(
                identifier, attempt_type.value, status.attempts, status.minutes_left
            )
            raise RateLimited(status.minutes_left)

    async def login_with_telegram(
        self,
        auth_data: Mapping[str, Any],
        ip_address: str,
        user_agent: Optional[str] = None,
    ) -> TokenPair:
        """Authenticate a user with Telegram Login Widget data.

        Args:
            auth_data (Mapping[str, Any]): Widget fields including ``hash``.
            ip_address (str): Client address, used for per-IP lockout.
            user_agent (Optional[str], optional): Client user agent, stored on the session.

        Raises:
            RateLimited: The IP address or the account is locked out.
            InvalidSignature: The data was not signed with the bot token.
            StaleAssertion: The data is older than 24 hours.
            PrincipalNotRegistered: No bot user with that Telegram id.
            InsufficientPermission: The user may not access the dashboard.

        Returns:
            TokenPair: Access and refresh tokens plus the user's profile.
        """
        # The principal is unknown until the signature checks out
        await self._check_not_blocked(ip_address, AttemptType.IP)

        result = verify_telegram_auth(
            auth_data, self.bot_token, now=to_timestamp(self.clock())
        )
        if not result.valid:
            await self.guard.record_failure(ip_address, AttemptType.IP)
            if result.reason == VerificationReason.STALE:
                audit.log_login_failure(None, ip_address, "Stale Telegram auth data", user_agent)
                raise StaleAssertion()
            audit.log_login_failure(None, ip_address, "Invalid Telegram auth data", user_agent)
            raise InvalidSignature()

        telegram_user = extract_user_info(auth_data)
        user_id = telegram_user["id"]

        user = await User.find_one(User.telegram_id == user_id)
        if user is None:
            await self.guard.record_failure(ip_address, AttemptType.IP)
            await self.guard.record_failure(user_id, AttemptType.USER)
            audit.log_login_failure(user_id, ip_address, "User not registered", user_agent)
            raise PrincipalNotRegistered()

        await self._check_not_blocked(user_id, AttemptType.USER)

        # Signature and identity are genuine here, so a refusal is not a guessing attempt
        permissions = await resolve_permissions(user.role, user.custom_roles)
        if not has_dashboard_access(user.role, permissions):
            audit.log_login_failure(user_id, ip_address, "No dashboard permission", user_agent)
            raise InsufficientPermission()

        await self.guard.reset_attempts(ip_address, AttemptType.IP)
        await self.guard.reset_attempts(user_id, AttemptType.USER)

        user.username = telegram_user["username"]
        user.first_name = telegram_user["first_name"]
        user.last_name = telegram_user["last_name"]
        await user.save()

        role = user.role.value if user.role else None
        access_token = self.tokens.create_access_token(user_id, role, permissions)
        refresh_token = self.tokens.create_refresh_token(user_id)

        await self.sessions.create(
            user_id=user_id,
            access_token_hash=hash_token(access_token),
            refresh_token_hash=hash_token(refresh_token),
            expires_at=self.tokens.expiry_for(TokenType.REFRESH),
            ip_address=ip_address,
            user_agent=user_agent,
        )

        audit.log_login(user_id, ip_address, user_agent)

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.tokens.access_token_expires_in,
            user=AuthUser(
                id=user_id,
                alias=user.alias,
                username=user.username,
                first_name=user.first_name,
                last_name=user.last_name,
                role=role,
                permissions=permissions,
            ),
        )

    async def refresh_access_token(self, refresh_token: str) -> AccessToken:
        """Issue a new access token for the session owning ``refresh_token``.

        The refresh token itself is not rotated and stays usable until the
        session expires or is revoked.
        """
        payload = self.tokens.verify_refresh_token(refresh_token)
        if payload is None:
            raise InvalidToken("Invalid or expired refresh token")

        session = await self.sessions.find_by_refresh_digest(hash_token(refresh_token))
        if session is None:
            raise InvalidToken("Session not found or expired")

        user = await User.find_one(User.telegram_id == session.user_id)
        permissions = await resolve_permissions(user.role, user.custom_roles) if user else []
        if user is None or not has_dashboard_access(user.role, permissions):
            logfire.warning(
                "Revoking session of user {user_id} who no longer has dashboard access",
                user_id=session.user_id,
            )
            await self.sessions.revoke(session.id)
            raise InvalidToken("Session not found or expired")

        role = user.role.value if user.role else None
        access_token = self.tokens.create_access_token(session.user_id, role, permissions)
        await self.sessions.touch(session, access_token_hash=hash_token(access_token))

        audit.log_token_refresh(session.user_id, session.ip_address)

        return AccessToken(
            access_token=access_token,
            expires_in=self.tokens.access_token_expires_in,
        )

    def introspect(self, access_token: str) -> TokenPayload:
        """Decode an access token without consulting the session store."""
        payload = self.tokens.verify_access_token(access_token)
        if payload is None:
            raise InvalidToken()
        return payload

    async def authenticate(self, access_token: str) -> AuthenticatedPrincipal:
        """Resolve the caller of a request carrying ``access_token``.

        Besides a valid signature, the token must still be the current access
        token of a live session, so logout takes effect immediately. Every
        authenticated request counts as activity on that session.
        """
        payload = self.introspect(access_token)

        session = await self.sessions.find_by_access_digest(hash_token(access_token))
        if session is None or session.user_id != payload.user_id:
            raise InvalidToken("Session not found or expired")

        await self.sessions.touch(session)

        return AuthenticatedPrincipal(
            user_id=payload.user_id,
            role=payload.role,
            permissions=payload.permissions,
            session_id=str(session.id),
        )

    async def get_current_user(self, user_id: str) -> CurrentUser:
        """Profile of ``user_id`` with freshly resolved permissions."""
        user = await User.find_one(User.telegram_id == user_id)
        if user is None:
            raise InvalidToken("User not found")

        permissions = await resolve_permissions(user.role, user.custom_roles)
        return CurrentUser(
            id=user.telegram_id,
            alias=user.alias,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value if user.role else None,
            permissions=permissions,
            in_lobby=user.in_lobby,
            join_date=user.created_at,
        )

    async def logout(self, access_token: str) -> bool:
        """Revoke the session the access token belongs to.

        Returns:
            bool: False when no live session matched the token.
        """
        session = await self.sessions.find_by_access_digest(hash_token(access_token))
        if session is None:
            return False

        audit.log_logout(session.user_id, session.ip_address)
        return await self.sessions.revoke(session.id)

    async def logout_all(self, user_id: str) -> int:
        """Revoke every session of ``user_id``. Returns how many were removed."""
        sessions = await self.sessions.list_active(user_id)
        ip_address = sessions[0].ip_address if sessions else "unknown"

        audit.log_logout(user_id, ip_address, logout_all=True)
        return await self.sessions.revoke_all(user_id)

    async def list_sessions(self, user_id: str) -> List[Session]:
        return await self.sessions.list_active(user_id)

    async def get_blocked_list(self) -> List[LoginAttempt]:
        return await self.guard.get_blocked_list()

    async def purge_expired(self) -> tuple[int, int]:
        """Remove expired sessions and stale login attempts.

        Returns:
            tuple[int, int]: Number of sessions and attempt records deleted.
        """
        with logfire.span("Purging expired auth records"):
            sessions_removed = await self.sessions.purge_expired()
            attempts_removed = await self.guard.purge_stale()
            if sessions_removed or attempts_removed:
                logfire.info(
                    "Purged {sessions} expired session(s) and {attempts} stale login attempt(s)",
                    sessions=sessions_removed,
                    attempts=attempts_removed,
                )
            return sessions_removed, attempts_removed


def build_auth_service(settings: AuthSettings) -> AuthService:
    """Wire an ``AuthService`` from settings. Raises ``ConfigurationError`` on bad secrets."""
    token_issuer = TokenIssuer(
        access_secret=settings.jwt_access_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
    )
    return AuthService(
        bot_token=settings.bot_token,
        token_issuer=token_issuer,
        session_store=SessionStore(max_sessions=settings.max_sessions_per_user),
        guard=BruteForceGuard(),
    )


# Global service instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get the auth service instance."""
    global _auth_service

    if _auth_service is None:
        _auth_service = build_auth_service(AuthSettings.from_env())

    return _auth_service
