"""
Pricing resolver tests.

VIP pricing requires all three: an exclusive member, an exclusive deal and
an exclusive price. Anything less falls back to the standard payout.
"""

from itertools import product
from types import SimpleNamespace

import pytest

from buygroup.models.deals import PRICE_ABOVE_RETAIL, PRICE_BELOW_COST, PRICE_RETAIL
from buygroup.services.pricing_service import (
    PayoutRate,
    classify_price,
    profit_percent,
    resolve_payout_rate,
)


def _profile(member):
    return SimpleNamespace(is_exclusive_member=member)


def _deal(exclusive, exclusive_price, payout=1100):
    return SimpleNamespace(is_exclusive=exclusive, exclusive_price_cents=exclusive_price, payout_cents=payout)


def test_vip_member_on_exclusive_deal_gets_exclusive_price():
    rate = resolve_payout_rate(_profile(True), _deal(True, 1200))
    assert rate == PayoutRate(rate_cents=1200, is_vip=True)


@pytest.mark.parametrize("member,exclusive,price", list(product([True, False], [True, False], [1200, None])))
def test_vip_only_when_all_three_hold(member, exclusive, price):
    rate = resolve_payout_rate(_profile(member), _deal(exclusive, price))
    if member and exclusive and price is not None:
        assert rate == PayoutRate(1200, True)
    else:
        assert rate == PayoutRate(1100, False)


def test_zero_exclusive_price_is_still_a_price():
    assert resolve_payout_rate(_profile(True), _deal(True, 0)) == PayoutRate(0, True)


def test_missing_profile_gets_standard_payout():
    assert resolve_payout_rate(None, _deal(True, 1200)) == PayoutRate(1100, False)


@pytest.mark.parametrize(
    "retail,payout,expected",
    [
        (1000, 1100, PRICE_ABOVE_RETAIL),
        (1000, 1000, PRICE_RETAIL),
        (1000, 900, PRICE_BELOW_COST),
    ],
)
def test_classify_price(retail, payout, expected):
    assert classify_price(retail, payout) == expected


def test_profit_percent_rounds_to_one_decimal():
    assert profit_percent(34999, 36000) == 2.9
    assert profit_percent(1000, 900) == -10.0
    assert profit_percent(0, 500) == 0.0
