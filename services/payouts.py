"""Escrow fee split between the platform and the creator."""

from decimal import Decimal, ROUND_DOWN
from core.config import PLATFORM_FEE_RATE

CENT = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't drag binary noise along
    return Decimal(str(value))


def truncate_cents(value) -> Decimal:
    return _to_decimal(value).quantize(CENT, rounding=ROUND_DOWN)


def platform_fee(amount, fee_rate=None) -> Decimal:
    rate = _to_decimal(fee_rate) if fee_rate is not None else PLATFORM_FEE_RATE
    return truncate_cents(_to_decimal(amount) * rate)


def payout_amount(amount, fee_rate=None) -> Decimal:
    rate = _to_decimal(fee_rate) if fee_rate is not None else PLATFORM_FEE_RATE
    return truncate_cents(_to_decimal(amount) * (Decimal("1") - rate))


def refund_amount(amount, fee_rate=None) -> Decimal:
    """A refunded client gets the gross minus the platform fee, which is never returned."""
    return payout_amount(amount, fee_rate)


def payment_breakdown(amount, fee_rate=None) -> dict:
    rate = _to_decimal(fee_rate) if fee_rate is not None else PLATFORM_FEE_RATE
    return {
        "gross_amount": truncate_cents(amount),
        "fee_rate": rate,
        "platform_fee": platform_fee(amount, rate),
        "creator_payout": payout_amount(amount, rate),
    }
