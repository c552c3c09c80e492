"""Celery tasks for the rentals domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore

from apps.rentals.application.command_handlers import (
    SyncReservationPaymentCommand,
    SyncReservationPaymentHandler,
)
from apps.rentals.domain.exceptions import GatewayError
from apps.rentals.infrastructure.booking_api import RentalApiClient

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name="rentals.sync_reservation_payment",
    max_retries=None,
)
def sync_reservation_payment(self, reservation_id: str, payment_reference: str) -> str:
    """
    Mark a reservation paid after the inline sync failed.

    The payment is already captured, so the task only retries the backend
    call with exponential backoff. Returns the reservation status.
    """

    handler = SyncReservationPaymentHandler(RentalApiClient.from_settings())
    try:
        reservation = handler.handle(
            SyncReservationPaymentCommand(
                reservation_id=reservation_id,
                payment_reference=payment_reference,
            )
        )
    except GatewayError as exc:
        retries = self.request.retries
        if retries >= settings.PAYMENT_SYNC_MAX_RETRIES:
            logger.error(
                f"Giving up syncing payment {payment_reference} for reservation "
                f"{reservation_id} after {retries} retries: {exc}"
            )
            raise
        countdown = settings.PAYMENT_SYNC_RETRY_BACKOFF * (2 ** retries)
        logger.warning(
            f"Payment sync for reservation {reservation_id} failed ({exc}); "
            f"retry {retries + 1} in {countdown}s"
        )
        raise self.retry(exc=exc, countdown=countdown)

    return reservation.status.value
