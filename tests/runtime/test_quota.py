from __future__ import annotations

import pytest

from quotashield.errors import ConfigurationError
from quotashield.runtime.contracts import QuotaPolicy
from quotashield.runtime.quota import QuotaManager

DAY = 86_400.0


class _FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _manager(clock: _FakeClock, **policy) -> QuotaManager:
    return QuotaManager(QuotaPolicy(**policy), clock=clock)


def test_charges_reduce_remaining_budget():
    quota = _manager(_FakeClock(10 * DAY + 100), budget_units=1000)
    quota.charge(100, "u1")
    quota.charge(1, "u2")

    status = quota.get_status()
    assert status.units_used == 101
    assert status.units_remaining == 899
    assert status.budget_units == 1000
    assert quota.get_status("u1").units_used == 100
    assert quota.usage_by_identity() == {"u1": 100, "u2": 1}


def test_period_aligns_to_midnight_and_resets():
    clock = _FakeClock(10 * DAY + 100)
    quota = _manager(clock, budget_units=1000)
    assert quota.reset_at == 11 * DAY
    assert quota.seconds_until_reset() == DAY - 100

    quota.charge(500, "u1")
    clock.advance(DAY - 100)
    status = quota.get_status("u1")
    assert status.units_used == 0
    assert status.units_remaining == 1000
    assert status.reset_at == 12 * DAY


def test_period_offset_moves_reset_boundary():
    quota = _manager(_FakeClock(10 * DAY + 100), period_offset_s=3600)
    assert quota.reset_at == 10 * DAY + 3600


def test_per_identity_budget_caps_remaining():
    quota = _manager(_FakeClock(DAY), budget_units=1000, per_identity_budget_units=300)
    quota.charge(200, "u1")
    quota.charge(600, "u2")

    u1 = quota.get_status("u1")
    assert u1.units_remaining == 100
    assert u1.budget_units == 300
    assert quota.get_status("u3").units_remaining == 200


def test_overshoot_is_recorded_not_refused():
    quota = _manager(_FakeClock(DAY), budget_units=100)
    quota.charge(100)
    quota.charge(100)
    status = quota.get_status()
    assert status.units_used == 200
    assert status.units_remaining == 0


def test_negative_and_zero_charges_are_ignored():
    quota = _manager(_FakeClock(DAY))
    quota.charge(-5, "u1")
    quota.charge(0, "u1")
    assert quota.get_status().units_used == 0
    assert quota.stats()["active_identities"] == 0


def test_policy_validation():
    with pytest.raises(ConfigurationError):
        QuotaPolicy(budget_units=0)
    with pytest.raises(ConfigurationError):
        QuotaPolicy(period_s=0)
    with pytest.raises(ConfigurationError):
        QuotaPolicy(per_identity_budget_units=0)
