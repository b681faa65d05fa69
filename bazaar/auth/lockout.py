"""Login lockout as a two-state machine.

An account is either unlocked or locked until some instant T. Failures
count up; reaching MAX_LOGIN_ATTEMPTS locks the account for LOCKOUT_DURATION.
A success resets everything. An expired lock is cleared the next time the
account is looked at.

These functions are pure; the repository applies the resulting state to the
user row inside the request transaction.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from bazaar.auth.constants import LOCKOUT_DURATION, MAX_LOGIN_ATTEMPTS
from bazaar.common.utils import as_aware


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None


def is_locked(state: LockoutState, at: datetime) -> bool:
    locked_until = as_aware(state.locked_until)
    return locked_until is not None and locked_until > at


def lazy_unlock(state: LockoutState, at: datetime) -> LockoutState:
    locked_until = as_aware(state.locked_until)
    if locked_until is not None and locked_until <= at:
        return LockoutState()
    return state


def after_failure(state: LockoutState, at: datetime,
                  max_attempts: int = MAX_LOGIN_ATTEMPTS,
                  duration: timedelta = LOCKOUT_DURATION) -> LockoutState:
    attempts = state.failed_attempts + 1
    if attempts >= max_attempts:
        return LockoutState(attempts, at + duration)
    return LockoutState(attempts, state.locked_until)


def after_success(state: LockoutState) -> LockoutState:
    return LockoutState()
