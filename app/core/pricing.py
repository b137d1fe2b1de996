"""Centralized amount derivation for plan billing.

Single source of truth for how a plan's catalog prices turn into the
net / tax / gross amounts charged at intake and copied onto the invoice.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.core.config import get_settings

CENTS = Decimal("0.01")
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class Amounts:
    net: Decimal
    tax: Decimal
    gross: Decimal

    @property
    def is_due(self) -> bool:
        return self.gross > 0


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def tax_rate() -> Decimal:
    """Policy tax rate (e.g. ``0.20``) from settings."""
    return Decimal(get_settings().tax_rate)


def monthly_price(monthly: Decimal | None, annual: Decimal | None) -> Decimal:
    """Monthly price of a plan, falling back to annual / 12 when monthly is zero."""
    monthly = monthly or Decimal("0")
    if monthly == 0 and annual and annual > 0:
        return annual / MONTHS_PER_YEAR
    return monthly


def derive_amounts(
    monthly: Decimal | None,
    annual: Decimal | None,
    rate: Decimal | None = None,
) -> Amounts:
    """Compute net, tax and gross amounts for one billing period."""
    rate = tax_rate() if rate is None else rate
    net = quantize(monthly_price(monthly, annual))
    tax = quantize(net * rate)
    return Amounts(net=net, tax=tax, gross=net + tax)
