"""Domain event subscribers for the rentals app."""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore

from shared.application.message_bus import MessageBus
from apps.rentals.domain.events import (
    CheckoutConfirmed,
    CheckoutFailed,
    PaymentSyncFailed,
    ReservationCancelled,
    ReservationCreated,
)

logger = logging.getLogger(__name__)


def schedule_payment_sync(event: PaymentSyncFailed) -> None:
    """Retry the backend sync in the background until it sticks."""

    from apps.rentals.tasks import sync_reservation_payment

    sync_reservation_payment.apply_async(
        args=(event.reservation_id, event.payment_reference),
        countdown=settings.PAYMENT_SYNC_RETRY_BACKOFF,
    )
    logger.warning(
        f"Payment {event.payment_reference} for reservation {event.reservation_id} "
        f"not synced ({event.error}); background retry scheduled"
    )


def report_orphaned_reservation(event: CheckoutFailed) -> None:
    if event.reservation_id is None:
        return
    logger.warning(
        f"Checkout failed after reservation {event.reservation_id} was created "
        f"({event.error_type}: {event.error}); reservation is pending without payment"
    )


def audit_event(event) -> None:
    logger.info("Rental event", extra={"event": event.to_dict()})


def register_event_handlers(bus: MessageBus) -> None:
    bus.register_event_handler(PaymentSyncFailed, schedule_payment_sync)
    bus.register_event_handler(CheckoutFailed, report_orphaned_reservation)
    for event_type in (ReservationCreated, CheckoutConfirmed, CheckoutFailed, ReservationCancelled):
        bus.register_event_handler(event_type, audit_event)
