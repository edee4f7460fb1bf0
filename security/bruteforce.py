"""Progressive lockout of repeated failed logins.

Failures are counted per identifier (an IP address or a user id) and each
identifier type is tracked separately. Lockout windows escalate with the
failure count:

    attempts   lockout
    < 3        none
    3          1 minute
    5          5 minutes
    7          15 minutes
    10+        60 minutes
"""
import math

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

import logfire

from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from models.helpers import AttemptType, utc_now
from models.security import LOGIN_ATTEMPT_RETENTION_SECONDS, LoginAttempt

# (attempts, lockout minutes), most restrictive first
LOCKOUT_THRESHOLDS = ((10, 60), (7, 15), (5, 5), (3, 1))
FIRST_LOCKOUT_AT = 3


@dataclass(frozen=True)
class Clear:
    """No failures on record."""


@dataclass(frozen=True)
class Warned:
    """Failures on record but no active lockout."""

    attempts: int


@dataclass(frozen=True)
class Locked:
    """Further attempts are refused until ``until``."""

    attempts: int
    until: datetime


LockoutState = Union[Clear, Warned, Locked]


class BlockStatus(BaseModel):
    """Answer to "may this identifier attempt a login right now?"."""

    blocked: bool
    attempts: int = 0
    attempts_left: Optional[int] = None
    blocked_until: Optional[datetime] = None
    minutes_left: Optional[int] = None


def lockout_minutes(attempts: int) -> int:
    """Lockout duration dictated by a failure count, 0 when none applies."""
    for threshold, minutes in LOCKOUT_THRESHOLDS:
        if attempts >= threshold:
            return minutes
    return 0


def next_threshold(attempts: int) -> int:
    """Failure count at which the next (longer) lockout starts."""
    if attempts >= 10:
        return attempts + 1
    for threshold in (3, 5, 7, 10):
        if attempts < threshold:
            return threshold
    return attempts + 1


def state_from_record(record: Optional[LoginAttempt], now: datetime) -> LockoutState:
    if record is None:
        return Clear()
    if record.blocked_until is not None and record.blocked_until > now:
        return Locked(record.attempts, record.blocked_until)
    return Warned(record.attempts)


def register_failure(state: LockoutState, now: datetime) -> LockoutState:
    """Transition taken on one more failed attempt.

    Thresholds only grow with the count, so a fresh lockout always replaces
    whatever window was there before.
    """
    attempts = 1 if isinstance(state, Clear) else state.attempts + 1
    minutes = lockout_minutes(attempts)
    if minutes:
        return Locked(attempts, now + timedelta(minutes=minutes))
    return Warned(attempts)


def evaluate(state: LockoutState, now: datetime) -> BlockStatus:
    if isinstance(state, Clear):
        return BlockStatus(blocked=False, attempts_left=FIRST_LOCKOUT_AT)

    if isinstance(state, Locked) and state.until > now:
        remaining = (state.until - now).total_seconds()
        return BlockStatus(
            blocked=True,
            attempts=state.attempts,
            blocked_until=state.until,
            minutes_left=max(1, math.ceil(remaining / 60)),
        )

    return BlockStatus(
        blocked=False,
        attempts=state.attempts,
        attempts_left=next_threshold(state.attempts) - state.attempts,
    )


class BruteForceGuard:
    """Persists lockout state in the ``login_attempts`` collection."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    async def _find(self, identifier: str, attempt_type: AttemptType) -> Optional[LoginAttempt]:
        return await LoginAttempt.find_one(
            LoginAttempt.identifier == identifier,
            LoginAttempt.type == attempt_type,
        )

    async def is_blocked(self, identifier: str, attempt_type: AttemptType) -> BlockStatus:
        """Check whether ``identifier`` is currently locked out."""
        now = self.clock()
        record = await self._find(identifier, attempt_type)
        return evaluate(state_from_record(record, now), now)

    async def record_failure(self, identifier: str, attempt_type: AttemptType) -> LoginAttempt:
        """Count one failed attempt and apply the lockout it earns.

        Concurrent failures may undercount by one; eventual lockout is all
        that is needed.
        """
        now = self.clock()
        record = await self._find(identifier, attempt_type)
        state = register_failure(state_from_record(record, now), now)
        blocked_until = state.until if isinstance(state, Locked) else None

        if record is None:
            record = LoginAttempt(
                identifier=identifier,
                type=attempt_type,
                attempts=state.attempts,
                last_attempt=now,
                blocked_until=blocked_until,
                created_at=now,
            )
            try:
                await record.insert()
            except DuplicateKeyError:
                # Another request created the record first; count on top of it
                return await self.record_failure(identifier, attempt_type)
        else:
            record.attempts = state.attempts
            record.last_attempt = now
            record.blocked_until = blocked_until
            await record.save()

        if blocked_until is not None:
            logfire.warning(
                "Lockout applied to {attempt_type} {identifier} after {attempts} failures",
                attempt_type=attempt_type.value,
                identifier=identifier,
                attempts=state.attempts,
                blocked_until=blocked_until.isoformat(),
            )
        return record

    async def reset_attempts(self, identifier: str, attempt_type: AttemptType) -> None:
        """Forget all failures of ``identifier`` after a successful login."""
        await LoginAttempt.find(
            LoginAttempt.identifier == identifier,
            LoginAttempt.type == attempt_type,
        ).delete()

    async def get_blocked_list(self) -> List[LoginAttempt]:
        """All identifiers locked out right now, latest lockout first."""
        now = self.clock()
        return (
            await LoginAttempt.find(LoginAttempt.blocked_until > now)
            .sort(-LoginAttempt.blocked_until)
            .to_list()
        )

    async def purge_stale(
        self, max_age: timedelta = timedelta(seconds=LOGIN_ATTEMPT_RETENTION_SECONDS)
    ) -> int:
        """Delete records idle for longer than ``max_age``. Returns the number removed."""
        cutoff = self.clock() - max_age
        result = await LoginAttempt.find(LoginAttempt.last_attempt < cutoff).delete()
        return result.deleted_count if result else 0
