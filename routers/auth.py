"""
Auth router for handling dashboard authentication endpoints.
"""

import logfire

from fastapi import APIRouter, Depends, Request, status

from typing import Annotated

from schema.security import (
    AuthenticatedPrincipal,
    BlockedIdentifier,
    BlockedListResponse,
    CurrentUserResponse,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RefreshTokenRequest,
    SessionInfo,
    SessionListResponse,
    TelegramAuthRequest,
)
from security.helpers import (
    get_bearer_token,
    get_client_ip,
    get_current_principal,
    require_permission,
)
from services.auth import AuthService, get_auth_service


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


@router.post("/telegram", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login_with_telegram(
    payload: TelegramAuthRequest,
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Log in with the data returned by the Telegram Login Widget.

    ## Responses
    ### Success
    - status code: 200
    - body: ```{'success': true, 'message': 'Authentication successful', 'data': {'accessToken': ..., 'refreshToken': ..., 'expiresIn': 900, 'user': {...}}}```

    ### Malformed data, bad or expired signature, unregistered user, no dashboard access
    - status code: 400
    - body: ```{'success': false, 'message': '...'}```

    ### Locked out after repeated failures
    - status code: 400
    - body: ```{'success': false, 'message': 'Too many failed login attempts. Please try again in 1 minute(s).'}```
    """
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("user-agent") or "Unknown"

    with logfire.span("Telegram login from {ip_address}", ip_address=ip_address):
        result = await auth_service.login_with_telegram(
            payload.model_dump(exclude_none=True), ip_address, user_agent
        )

    return LoginResponse(message="Authentication successful", data=result)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_access_token(
    payload: RefreshTokenRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Exchange a refresh token for a new access token."""
    result = await auth_service.refresh_access_token(payload.refresh_token)
    return RefreshResponse(message="Token refreshed successfully", data=result)


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    principal: Annotated[AuthenticatedPrincipal, Depends(get_current_principal)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Profile of the authenticated user."""
    user = await auth_service.get_current_user(principal.user_id)
    return CurrentUserResponse(data=user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    principal: Annotated[AuthenticatedPrincipal, Depends(get_current_principal)],
    token: Annotated[str, Depends(get_bearer_token)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Logout endpoint that revokes the current session."""
    await auth_service.logout(token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all_devices(
    principal: Annotated[AuthenticatedPrincipal, Depends(get_current_principal)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Logout from all devices by revoking every session of the user."""
    revoked = await auth_service.logout_all(principal.user_id)
    logfire.info(
        "Revoked {revoked} session(s) of user {user_id}",
        revoked=revoked,
        user_id=principal.user_id,
    )
    return MessageResponse(message="Logged out from all devices")


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    principal: Annotated[AuthenticatedPrincipal, Depends(get_current_principal)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Active sessions of the authenticated user, most recently used first."""
    sessions = await auth_service.list_sessions(principal.user_id)
    return SessionListResponse(
        data=[
            SessionInfo(
                id=str(session.id),
                ip_address=session.ip_address,
                user_agent=session.user_agent,
                created_at=session.created_at,
                last_activity=session.last_activity,
                expires_at=session.expires_at,
                current=str(session.id) == principal.session_id,
            )
            for session in sessions
        ]
    )


@router.get("/blocked", response_model=BlockedListResponse)
async def list_blocked_identifiers(
    principal: Annotated[AuthenticatedPrincipal, Depends(require_permission("permissions.view"))],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """IP addresses and accounts currently locked out after failed logins."""
    blocked = await auth_service.get_blocked_list()
    return BlockedListResponse(
        data=[
            BlockedIdentifier(
                identifier=attempt.identifier,
                type=attempt.type.value,
                attempts=attempt.attempts,
                last_attempt=attempt.last_attempt,
                blocked_until=attempt.blocked_until,
            )
            for attempt in blocked
        ]
    )
