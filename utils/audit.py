"""Audit trail for authentication events.

Events go through logfire as structured records so they can be queried by
``event`` and ``user_id``. Token values never reach this module.
"""

from typing import Optional

import logfire


def log_login(user_id: str, ip_address: Optional[str], user_agent: Optional[str]) -> None:
    logfire.info(
        "Login success for user {user_id} from {ip_address}",
        event="login_success",
        user_id=user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        method="telegram",
    )


def log_login_failure(
    user_id: Optional[str], ip_address: Optional[str], reason: str, user_agent: Optional[str]
) -> None:
    logfire.warning(
        "Login failure for user {user_id} from {ip_address}: {reason}",
        event="login_failure",
        user_id=user_id or "unknown",
        ip_address=ip_address,
        reason=reason,
        user_agent=user_agent,
        method="telegram",
    )


def log_logout(user_id: str, ip_address: Optional[str], logout_all: bool = False) -> None:
    logfire.info(
        "Logout of user {user_id} (all devices: {logout_all})",
        event="logout_all" if logout_all else "logout",
        user_id=user_id,
        ip_address=ip_address,
        logout_all=logout_all,
    )


def log_token_refresh(user_id: str, ip_address: Optional[str]) -> None:
    logfire.info(
        "Access token refreshed for user {user_id}",
        event="token_refresh",
        user_id=user_id,
        ip_address=ip_address,
    )


def log_brute_force_block(
    identifier: str, attempt_type: str, attempts: int, minutes_left: Optional[int]
) -> None:
    logfire.warning(
        "Blocked login attempt from {attempt_type} {identifier}",
        event="brute_force_block",
        identifier=identifier,
        attempt_type=attempt_type,
        attempts=attempts,
        minutes_left=minutes_left,
    )
