"""
Pricing Engine

Derives a price breakdown from the current selections. Pure: no I/O,
no clock, no module state; equal inputs give equal breakdowns.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from shared.domain.base import ValueObject
from shared.domain.value_objects import DateRange, Money
from apps.rentals.domain.entities import Extra, Vehicle

TAX_RATE = Decimal('0.10')


@dataclass(frozen=True)
class PriceBreakdown(ValueObject):
    """
    Price breakdown for a rental

    grand_total = base_price + extras_total + tax_amount
    tax_amount  = (base_price + extras_total) * TAX_RATE
    """
    total_days: int
    base_price: Money
    extras_total: Money
    tax_amount: Money
    grand_total: Money

    @property
    def subtotal(self) -> Money:
        return self.base_price + self.extras_total

    @classmethod
    def empty(cls, currency: str = 'USD') -> 'PriceBreakdown':
        zero = Money.zero(currency)
        return cls(total_days=0, base_price=zero, extras_total=zero, tax_amount=zero, grand_total=zero)

    def to_dict(self) -> dict:
        return {
            'total_days': self.total_days,
            'base_price': str(self.base_price.amount),
            'extras_total': str(self.extras_total.amount),
            'tax_amount': str(self.tax_amount.amount),
            'grand_total': str(self.grand_total.amount),
            'currency': self.grand_total.currency,
        }


class PricingEngine:
    """
    Computes PriceBreakdown values

    Amounts are in the currency of the selected vehicle and extras; the
    engine's own currency only applies when nothing is selected.
    """

    def __init__(self, currency: str = 'USD'):
        self.currency = currency

    def total_days(self, date_range: DateRange | None) -> int:
        if date_range is None:
            return 0
        return date_range.days

    def currency_for(self, vehicle: Vehicle | None, extras: Iterable[Extra] = ()) -> str:
        """Currency of the selection; the engine default when nothing is selected"""
        if vehicle is not None:
            return vehicle.daily_rate.currency
        for extra in extras:
            return extra.daily_rate.currency
        return self.currency

    def compute(
        self,
        date_range: DateRange | None,
        vehicle: Vehicle | None,
        extras: Iterable[Extra] = (),
    ) -> PriceBreakdown:
        """Mixed currencies raise ValueError; BookingSession never holds them"""
        extras = list(extras)
        currency = self.currency_for(vehicle, extras)
        days = self.total_days(date_range)
        if days == 0:
            return PriceBreakdown.empty(currency)

        zero = Money.zero(currency)
        base_price = vehicle.daily_rate * days if vehicle is not None else zero

        extras_total = zero
        for extra in extras:
            extras_total = extras_total + extra.daily_rate * days

        subtotal = base_price + extras_total
        tax_amount = subtotal * TAX_RATE

        return PriceBreakdown(
            total_days=days,
            base_price=base_price,
            extras_total=extras_total,
            tax_amount=tax_amount,
            grand_total=subtotal + tax_amount,
        )
