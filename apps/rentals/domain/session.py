"""
Booking Session Aggregate

Accumulates the choices of one in-progress reservation flow. The session
is passed explicitly to whoever needs it and lives for one flow only:

    with BookingSession() as session:
        session.set_date_range(start, end)
        ...
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List
import logging

from shared.domain.base import Aggregate
from shared.domain.value_objects import DateRange
from apps.rentals.domain.entities import Extra, Vehicle
from apps.rentals.domain.exceptions import CurrencyMismatchError, InvalidRangeError
from apps.rentals.domain.pricing import PriceBreakdown, PricingEngine

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = 'Main Office'


@dataclass(eq=False)
class BookingSession(Aggregate):
    """
    BookingSession Aggregate Root

    Key invariants:
    - date_range, when set, always has start < end
    - extras are unique by id
    - vehicle and extras share one currency
    - last_pricing_snapshot is either None or matches the current
      dates, vehicle and extras
    """
    date_range: DateRange | None = None
    selected_vehicle: Vehicle | None = None
    extras: Dict[str, Extra] = field(default_factory=dict)
    pickup_location: str = DEFAULT_LOCATION
    dropoff_location: str = DEFAULT_LOCATION
    notes: str = ''
    last_pricing_snapshot: PriceBreakdown | None = field(default=None, repr=False)
    pricing: PricingEngine = field(default_factory=PricingEngine, repr=False)

    def __enter__(self) -> 'BookingSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.reset()

    # ===== Pricing inputs =====

    def set_date_range(self, start: date, end: date):
        """Replace the rental period; reversed or empty periods are rejected"""
        try:
            date_range = DateRange(start, end)
        except (TypeError, ValueError) as e:
            raise InvalidRangeError(str(e)) from e

        self.date_range = date_range
        self._invalidate_pricing()

    def set_vehicle(self, vehicle: Vehicle | None):
        """
        Replace the selected vehicle

        Availability is not checked here; use AvailabilityChecker first.
        """
        self._require_single_currency(vehicle, self.extras.values())
        self.selected_vehicle = vehicle
        self._invalidate_pricing()

    def toggle_extra(self, extra: Extra):
        """Add the extra if absent (by id), remove it if present"""
        if extra.id in self.extras:
            del self.extras[extra.id]
        else:
            self._require_single_currency(self.selected_vehicle, [*self.extras.values(), extra])
            self.extras[extra.id] = extra
        self._invalidate_pricing()

    def set_extras(self, extras: Iterable[Extra]):
        selected = {extra.id: extra for extra in extras}
        self._require_single_currency(self.selected_vehicle, selected.values())
        self.extras = selected
        self._invalidate_pricing()

    # ===== Fields without pricing impact =====

    def set_locations(self, pickup: str, dropoff: str):
        self.pickup_location = pickup
        self.dropoff_location = dropoff
        self.touch()

    def set_notes(self, text: str | None):
        self.notes = text or ''
        self.touch()

    # ===== Derived values =====

    @property
    def extra_ids(self) -> List[str]:
        return list(self.extras)

    def get_price_breakdown(self) -> PriceBreakdown:
        """Cached breakdown, recomputed whenever the inputs changed"""
        if self.last_pricing_snapshot is None:
            self.last_pricing_snapshot = self.pricing.compute(
                self.date_range,
                self.selected_vehicle,
                self.extras.values(),
            )
        return self.last_pricing_snapshot

    def is_checkout_ready(self) -> bool:
        return self.date_range is not None and self.selected_vehicle is not None

    def reset(self):
        """Restore every field to its empty default"""
        self.date_range = None
        self.selected_vehicle = None
        self.extras = {}
        self.pickup_location = DEFAULT_LOCATION
        self.dropoff_location = DEFAULT_LOCATION
        self.notes = ''
        self.last_pricing_snapshot = None
        self.touch()
        logger.debug(f"Booking session {self.id} reset")

    def _require_single_currency(self, vehicle: Vehicle | None, extras: Iterable[Extra]):
        currencies = {extra.daily_rate.currency for extra in extras}
        if vehicle is not None:
            currencies.add(vehicle.daily_rate.currency)
        if len(currencies) > 1:
            raise CurrencyMismatchError(
                f"Selections are priced in different currencies: {', '.join(sorted(currencies))}"
            )

    def _invalidate_pricing(self):
        self.last_pricing_snapshot = None
        self.touch()
