"""Contains all security related FastAPI dependencies
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from typing import Annotated, Optional

from schema.security import AuthenticatedPrincipal
from security.permissions import has_permission
from services.auth import AuthService, get_auth_service
from utils.exceptions import InvalidToken


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/telegram", auto_error=False)


def get_client_ip(request: Request) -> str:
    """Client address as seen after ``ProxyHeadersMiddleware`` resolved forwarding."""
    return request.client.host if request.client else "unknown"


def get_bearer_token(token: Annotated[Optional[str], Depends(oauth2_scheme)]) -> str:
    """Raw bearer token from the ``Authorization`` header.

    Raises:
        InvalidToken: Raised when the header is missing or not a bearer token.
    """
    if not token:
        raise InvalidToken("No token provided")
    return token


async def get_current_principal(
    token: Annotated[str, Depends(get_bearer_token)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthenticatedPrincipal:
    """Get the caller from the access token.

    Args:
        token (Annotated[str, Depends]): The access token.
        auth_service (Annotated[AuthService, Depends]): The auth service.

    Raises:
        InvalidToken: Raised when the token is invalid, expired, or its session was revoked.

    Returns:
        AuthenticatedPrincipal: The authenticated caller.
    """
    return await auth_service.authenticate(token)


def require_permission(permission: str):
    """Dependency factory refusing callers whose token lacks ``permission``.

    Usage: ``Depends(require_permission("permissions.view"))``
    """

    async def dependency(
        principal: Annotated[AuthenticatedPrincipal, Depends(get_current_principal)],
    ) -> AuthenticatedPrincipal:
        if not has_permission(principal.permissions, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden"
            )
        return principal

    return dependency
