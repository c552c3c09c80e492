"""
Checkout Domain Events

Recorded by the CheckoutProcess aggregate on each transition and
published on the message bus once the transition has completed.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.base import DomainEvent


@dataclass
class ReservationCreated(DomainEvent):
    """
    Event: the backend holds a pending reservation for this checkout

    From here on a reservation exists even if payment never happens.
    """
    reservation_id: str
    vehicle_id: str
    grand_total: Decimal
    currency: str


@dataclass
class PaymentIntentCreated(DomainEvent):
    reservation_id: str
    intent_id: str | None = None


@dataclass
class PaymentCaptured(DomainEvent):
    """Event: the processor reports the payment as succeeded"""
    reservation_id: str
    payment_reference: str


@dataclass
class CheckoutConfirmed(DomainEvent):
    """Event: payment captured and the backend marked the reservation paid"""
    reservation_id: str
    payment_reference: str


@dataclass
class PaymentSyncFailed(DomainEvent):
    """
    Event: payment captured but the backend sync call failed

    Triggers:
    - Background retry of the sync (Celery)
    """
    reservation_id: str
    payment_reference: str
    error: str


@dataclass
class CheckoutFailed(DomainEvent):
    """
    Event: the attempt ended in FAILED

    ``reservation_id`` is set when the failure happened after the
    reservation was created (orphaned reservation to reconcile).
    """
    error_type: str
    error: str
    reservation_id: str | None = None


@dataclass
class CheckoutAbandoned(DomainEvent):
    pass


@dataclass
class ReservationCancelled(DomainEvent):
    reservation_id: str
    reason: str
