# Overview: Resolves the per-unit payout a vendor earns on a deal, and classifies deal pricing.

"""
Pricing Resolver

The payout is always computed here from trusted Profile/Deal rows. Request
bodies may carry `payout_rate` / `is_vip_pricing` (older clients send them);
those values are never read.

VIP pricing applies only when all three hold:
    profile.is_exclusive_member
    deal.is_exclusive
    deal.exclusive_price_cents is not None
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.deals import PRICE_ABOVE_RETAIL, PRICE_BELOW_COST, PRICE_RETAIL


@dataclass(frozen=True)
class PayoutRate:
    rate_cents: int
    is_vip: bool


def is_vip_eligible(profile, deal) -> bool:
    return bool(
        profile is not None
        and profile.is_exclusive_member
        and deal.is_exclusive
        and deal.exclusive_price_cents is not None
    )


def resolve_payout_rate(profile, deal) -> PayoutRate:
    if is_vip_eligible(profile, deal):
        return PayoutRate(rate_cents=deal.exclusive_price_cents, is_vip=True)
    return PayoutRate(rate_cents=deal.payout_cents, is_vip=False)


def classify_price(retail_price_cents: int, payout_cents: int) -> str:
    """Listing label only; never feeds allocation or invoicing."""
    if payout_cents > retail_price_cents:
        return PRICE_ABOVE_RETAIL
    if payout_cents == retail_price_cents:
        return PRICE_RETAIL
    return PRICE_BELOW_COST


def profit_percent(retail_price_cents: int, payout_cents: int) -> float:
    """Percent gain on the buy price, one decimal place (bot digest)."""
    if not retail_price_cents:
        return 0.0
    return round(((payout_cents - retail_price_cents) / retail_price_cents) * 1000) / 10
