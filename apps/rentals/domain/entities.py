"""
Rental Domain Entities

Value objects exchanged between the booking session, the checkout
process and the remote booking API:
- Vehicle, Extra: catalogue items referenced by the session
- Availability: answer of the availability boundary
- ReservationRequest / Reservation: the remote reservation record
- PaymentIntent / PaymentResult / PaymentStatus: processor handles
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Tuple

from shared.domain.base import ValueObject
from shared.domain.value_objects import DateRange, Money

CLIENT_SECRET_SEPARATOR = '_secret_'


class ReservationStatus(Enum):
    """
    Remote reservation lifecycle

    - PENDING -> CONFIRMED (payment synced)
    - CONFIRMED -> ACTIVE (vehicle picked up)
    - ACTIVE -> COMPLETED (vehicle returned)
    - PENDING / CONFIRMED / ACTIVE -> CANCELLED
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class Vehicle(ValueObject):
    """Vehicle summary as shown in the catalogue"""
    id: str
    daily_rate: Money
    brand: str = ''
    model: str = ''
    year: int | None = None
    vehicle_type: str = ''

    @property
    def display_name(self) -> str:
        name = f"{self.brand} {self.model}".strip()
        return name or self.id


@dataclass(frozen=True)
class Extra(ValueObject):
    """Paid add-on charged per rental day (insurance, GPS, child seat...)"""
    id: str
    daily_rate: Money
    name: str = ''
    description: str = ''
    category: str = 'other'


@dataclass(frozen=True)
class Availability(ValueObject):
    available: bool
    reason: str | None = None


@dataclass(frozen=True)
class ReservationRequest(ValueObject):
    """Payload of a reservation create call"""
    vehicle_id: str
    dates: DateRange
    extra_ids: Tuple[str, ...] = ()
    pickup_location: str = 'Main Office'
    dropoff_location: str = 'Main Office'
    notes: str = ''
    idempotency_key: str | None = None

    @property
    def start_date(self) -> date:
        return self.dates.start_date

    @property
    def end_date(self) -> date:
        return self.dates.end_date


@dataclass(frozen=True)
class Reservation(ValueObject):
    """Backend reservation record, as far as the client needs it"""
    id: str
    status: ReservationStatus = ReservationStatus.PENDING
    total_price: Money | None = None
    payment_status: str = 'pending'
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    def can_be_cancelled(self) -> bool:
        return self.status not in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)


@dataclass(frozen=True)
class PaymentIntent(ValueObject):
    client_secret: str
    intent_id: str | None = None
    amount: Money | None = None

    @property
    def reference(self) -> str | None:
        """Intent id, falling back to the prefix of the client secret"""
        if self.intent_id:
            return self.intent_id
        prefix, separator, _ = self.client_secret.partition(CLIENT_SECRET_SEPARATOR)
        return prefix if separator and prefix else None


@dataclass(frozen=True)
class PaymentStatus(ValueObject):
    """
    Payment state of a reservation as reported by the backend

    ``payment_status`` is the backend record (pending, paid, refunded,
    failed); ``processor_status`` is the live intent status, when known.
    """
    reservation_id: str
    payment_status: str = 'pending'
    processor_status: str | None = None
    amount: Money | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == 'paid'

    @property
    def captured(self) -> bool:
        """The charge went through, whether or not the backend knows yet"""
        return self.is_paid or self.processor_status == 'succeeded'


@dataclass(frozen=True)
class PaymentResult(ValueObject):
    """Outcome of a card confirmation at the processor"""
    status: str
    payment_reference: str

    @property
    def succeeded(self) -> bool:
        return self.status == 'succeeded'
