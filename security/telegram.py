"""Verification of Telegram Login Widget data.

Telegram signs the widget payload with HMAC-SHA256, keyed by the SHA-256
digest of the bot token, over a data-check string built from every field but
``hash``: ``key=value`` pairs sorted by key and joined with newlines.
"""
import hashlib
import hmac
import time

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

# Login data older than this is refused even when correctly signed
AUTH_DATA_MAX_AGE_SECONDS = 24 * 60 * 60

SIGNATURE_FIELD = "hash"


class VerificationReason(str, Enum):
    OK = "ok"
    BAD_SIGNATURE = "bad_signature"
    STALE = "stale"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: VerificationReason


def build_data_check_string(auth_data: Mapping[str, Any]) -> str:
    """Canonical string Telegram signs: sorted ``key=value`` lines, ``hash`` excluded."""
    pairs = [
        f"{key}={value}"
        for key, value in sorted(auth_data.items())
        if key != SIGNATURE_FIELD and value is not None
    ]
    return "\n".join(pairs)


def compute_signature(auth_data: Mapping[str, Any], bot_token: str) -> str:
    """Compute the lowercase hex signature Telegram would attach to ``auth_data``."""
    secret_key = hashlib.sha256(bot_token.encode("utf-8")).digest()
    check_string = build_data_check_string(auth_data)
    return hmac.new(secret_key, check_string.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_telegram_auth(
    auth_data: Mapping[str, Any], bot_token: str, now: Optional[float] = None
) -> VerificationResult:
    """Check that ``auth_data`` was signed with ``bot_token`` and is fresh.

    Args:
        auth_data (Mapping[str, Any]): Fields received from the login widget, including ``hash``.
        bot_token (str): The bot token shared with Telegram.
        now (Optional[float], optional): Current unix time. Defaults to ``time.time()``.

    Returns:
        VerificationResult: ``valid`` plus one of ``ok``, ``bad_signature`` or ``stale``.
    """
    signature = auth_data.get(SIGNATURE_FIELD)
    if not signature or not isinstance(signature, str):
        return VerificationResult(False, VerificationReason.BAD_SIGNATURE)

    try:
        auth_date = int(auth_data.get("auth_date"))
    except (TypeError, ValueError):
        return VerificationResult(False, VerificationReason.BAD_SIGNATURE)

    current_time = time.time() if now is None else now
    if current_time - auth_date > AUTH_DATA_MAX_AGE_SECONDS:
        return VerificationResult(False, VerificationReason.STALE)

    expected = compute_signature(auth_data, bot_token)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        return VerificationResult(False, VerificationReason.BAD_SIGNATURE)

    return VerificationResult(True, VerificationReason.OK)


def extract_user_info(auth_data: Mapping[str, Any]) -> dict:
    """Map verified widget fields onto user profile fields."""
    return {
        "id": str(auth_data["id"]),
        "first_name": auth_data.get("first_name"),
        "last_name": auth_data.get("last_name") or None,
        "username": auth_data.get("username") or None,
        "photo_url": auth_data.get("photo_url") or None,
    }
