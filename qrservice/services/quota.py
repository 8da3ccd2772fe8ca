"""Rolling-window admission for QR generation.

Usage is never stored as a tally: a caller's consumption in a window is the
number of artifacts it created through its channel since ``now - window``.
Creating an artifact is therefore the act of consuming quota, and cache hits
(which create nothing) are free.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import QuotaPolicy
from ..errors import AuthenticationError, AuthorizationError, QuotaExceededError

logger = logging.getLogger(__name__)

# Evaluated in this order; the first exceeded scope is reported.
WINDOWS = (
    ('hourly', timedelta(hours=1)),
    ('daily', timedelta(days=1)),
    ('monthly', timedelta(days=30)),
)


@dataclass(frozen=True)
class WindowUsage:
    used: int
    limit: int

    def to_dict(self):
        return {'used': self.used, 'limit': self.limit}


@dataclass(frozen=True)
class Usage:
    hourly: WindowUsage
    daily: WindowUsage
    monthly: WindowUsage

    def plus_one(self) -> 'Usage':
        return Usage(*(WindowUsage(w.used + 1, w.limit) for w in (self.hourly, self.daily, self.monthly)))

    def to_dict(self):
        return {
            'hourly': self.hourly.to_dict(),
            'daily': self.daily.to_dict(),
            'monthly': self.monthly.to_dict(),
        }


@dataclass(frozen=True)
class Admitted:
    usage: Usage


@dataclass(frozen=True)
class Denied:
    scope: str
    used: int
    limit: int
    reset_time: datetime

    def to_error(self) -> QuotaExceededError:
        return QuotaExceededError(self.scope, self.used, self.limit, self.reset_time)


class QuotaLedger:
    """Admission decisions against per-channel hourly/daily/monthly limits.

    ``counter`` is a read-only query capability over artifacts exposing
    ``count_created_since(owner_id, channel, since)`` and
    ``earliest_created_since(owner_id, channel, since)``.
    Admission is read-then-act with no lock, so concurrent requests from one
    caller can overshoot a limit slightly.
    """

    def __init__(self, policy: QuotaPolicy, counter):
        self.policy = policy
        self.counter = counter

    def _check_caller(self, caller, now: datetime):
        if caller is None:
            raise AuthenticationError('Authentication required')
        if caller.channel == 'apikey':
            if caller.status != 'active':
                raise AuthorizationError('API key has been revoked')
            if caller.expires_at is not None and caller.expires_at <= now:
                raise AuthorizationError('API key has expired')

    def snapshot(self, caller, now: datetime) -> Usage:
        limits = self.policy.for_channel(caller.channel)
        counts = [
            self.counter.count_created_since(caller.subject_id, caller.channel, now - length)
            for _, length in WINDOWS
        ]
        return Usage(
            hourly=WindowUsage(counts[0], limits.hourly_limit),
            daily=WindowUsage(counts[1], limits.daily_limit),
            monthly=WindowUsage(counts[2], limits.monthly_limit),
        )

    def admit(self, caller, now: datetime):
        self._check_caller(caller, now)
        usage = self.snapshot(caller, now)
        for scope, length in WINDOWS:
            window = getattr(usage, scope)
            # used == limit is already over: the limit bounds prior usage exclusively
            if window.used >= window.limit:
                since = now - length
                oldest = self.counter.earliest_created_since(caller.subject_id, caller.channel, since)
                reset_time = (oldest or now) + length
                logger.info(
                    'Quota denied: subject=%s channel=%s scope=%s used=%d limit=%d',
                    caller.subject_id, caller.channel, scope, window.used, window.limit,
                )
                return Denied(scope=scope, used=window.used, limit=window.limit, reset_time=reset_time)
        return Admitted(usage=usage)
