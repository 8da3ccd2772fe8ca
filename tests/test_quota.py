"""
Tests for rolling-window admission.
"""
from datetime import datetime, timedelta

import pytest

from qrservice.config import ChannelLimits, QuotaPolicy
from qrservice.errors import AuthenticationError, AuthorizationError
from qrservice.services.identity import ApiKeyCaller, SessionCaller
from qrservice.services.quota import Admitted, Denied, QuotaLedger

NOW = datetime(2024, 5, 1, 12, 0, 0)

POLICY = QuotaPolicy(
    session=ChannelLimits(hourly_limit=5, daily_limit=8, monthly_limit=10),
    apikey=ChannelLimits(hourly_limit=3, daily_limit=5, monthly_limit=6),
)


class FakeCounter:
    def __init__(self):
        self.created = []  # (owner, channel, ts)

    def add(self, owner, channel, ts, n=1):
        self.created.extend([(owner, channel, ts)] * n)

    def _matching(self, owner, channel, since):
        return [ts for o, c, ts in self.created if o == owner and c == channel and ts >= since]

    def count_created_since(self, owner, channel, since):
        return len(self._matching(owner, channel, since))

    def earliest_created_since(self, owner, channel, since):
        hits = self._matching(owner, channel, since)
        return min(hits) if hits else None


def apikey_caller(**kw):
    fields = dict(subject_id=1, key_id=10, used=0, expires_at=None, status='active')
    fields.update(kw)
    return ApiKeyCaller(**fields)


@pytest.fixture
def counter():
    return FakeCounter()


@pytest.fixture
def ledger(counter):
    return QuotaLedger(POLICY, counter)


def test_fresh_caller_is_admitted_with_zero_usage(ledger):
    decision = ledger.admit(apikey_caller(), NOW)
    assert isinstance(decision, Admitted)
    assert decision.usage.to_dict() == {
        'hourly': {'used': 0, 'limit': 3},
        'daily': {'used': 0, 'limit': 5},
        'monthly': {'used': 0, 'limit': 6},
    }


def test_one_below_hourly_limit_is_admitted(ledger, counter):
    counter.add(1, 'apikey', NOW - timedelta(minutes=5), n=2)
    decision = ledger.admit(apikey_caller(), NOW)
    assert isinstance(decision, Admitted)
    assert decision.usage.hourly.used == 2


def test_at_hourly_limit_is_denied(ledger, counter):
    oldest = NOW - timedelta(minutes=50)
    counter.add(1, 'apikey', oldest)
    counter.add(1, 'apikey', NOW - timedelta(minutes=5), n=2)
    decision = ledger.admit(apikey_caller(), NOW)
    assert isinstance(decision, Denied)
    assert decision.scope == 'hourly'
    assert decision.used == 3
    assert decision.limit == 3
    assert decision.reset_time == oldest + timedelta(hours=1)


def test_hourly_is_reported_before_daily_when_both_exceeded(ledger, counter):
    counter.add(1, 'apikey', NOW - timedelta(minutes=10), n=5)
    decision = ledger.admit(apikey_caller(), NOW)
    assert decision.scope == 'hourly'


def test_daily_limit_counts_older_artifacts(ledger, counter):
    counter.add(1, 'apikey', NOW - timedelta(hours=5), n=5)
    decision = ledger.admit(apikey_caller(), NOW)
    assert isinstance(decision, Denied)
    assert decision.scope == 'daily'
    assert decision.used == 5


def test_monthly_limit_uses_thirty_day_window(ledger, counter):
    counter.add(1, 'apikey', NOW - timedelta(days=29), n=6)
    counter.add(1, 'apikey', NOW - timedelta(days=31), n=50)
    decision = ledger.admit(apikey_caller(), NOW)
    assert decision.scope == 'monthly'
    assert decision.used == 6


def test_window_slides_rather_than_resets(ledger, counter):
    counter.add(1, 'apikey', NOW - timedelta(minutes=61), n=3)
    decision = ledger.admit(apikey_caller(), NOW)
    assert isinstance(decision, Admitted)
    assert decision.usage.hourly.used == 0
    assert decision.usage.daily.used == 3


def test_channels_and_owners_are_counted_separately(ledger, counter):
    counter.add(1, 'session', NOW, n=4)
    counter.add(2, 'apikey', NOW, n=4)
    assert isinstance(ledger.admit(apikey_caller(), NOW), Admitted)
    session_decision = ledger.admit(SessionCaller(subject_id=1, role='user'), NOW)
    assert isinstance(session_decision, Admitted)
    assert session_decision.usage.hourly.to_dict() == {'used': 4, 'limit': 5}


def test_missing_caller_is_unauthenticated(ledger):
    with pytest.raises(AuthenticationError):
        ledger.admit(None, NOW)


@pytest.mark.parametrize('caller', [
    apikey_caller(status='revoked'),
    apikey_caller(expires_at=NOW - timedelta(seconds=1)),
])
def test_unusable_key_is_forbidden_before_counting(caller):
    class ExplodingCounter(FakeCounter):
        def count_created_since(self, *a):
            raise AssertionError('should not count')

    with pytest.raises(AuthorizationError):
        QuotaLedger(POLICY, ExplodingCounter()).admit(caller, NOW)


def test_usage_after_creation_adds_one_everywhere(ledger, counter):
    counter.add(1, 'apikey', NOW, n=1)
    usage = ledger.admit(apikey_caller(), NOW).usage.plus_one()
    assert [usage.hourly.used, usage.daily.used, usage.monthly.used] == [2, 2, 2]
