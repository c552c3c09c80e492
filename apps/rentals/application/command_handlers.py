"""
Reservation Command Handlers

Use cases that act on an existing reservation outside the checkout
state machine:
- CancelReservationCommand: cancel a reservation from the history view
- SyncReservationPaymentCommand: tell the backend about a captured payment
"""

from dataclasses import dataclass
import logging

from shared.application.message_bus import MessageBus, message_bus
from apps.rentals.domain.entities import Reservation
from apps.rentals.domain.events import ReservationCancelled
from apps.rentals.domain.exceptions import ReservationNotCancellableError
from apps.rentals.domain.ports import ReservationGateway

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = 'Cancelled by user'


# ===== Commands =====

@dataclass
class CancelReservationCommand:
    reservation_id: str
    reason: str = ''


@dataclass
class SyncReservationPaymentCommand:
    """Mark a reservation paid with the processor's payment reference"""
    reservation_id: str
    payment_reference: str


# ===== Command Handlers =====

class CancelReservationHandler:
    """
    Handler for CancelReservation command

    Completed and cancelled reservations are refused locally so the
    backend is only asked to cancel something it can cancel.
    """

    def __init__(self, reservations: ReservationGateway, bus: MessageBus | None = None):
        self.reservations = reservations
        self.bus = bus if bus is not None else message_bus

    def handle(self, command: CancelReservationCommand) -> Reservation:
        logger.info(f"Cancelling reservation {command.reservation_id}, reason: {command.reason!r}")

        reservation = self.reservations.get_reservation(command.reservation_id)
        if not reservation.can_be_cancelled():
            raise ReservationNotCancellableError(
                f"Cannot cancel a {reservation.status.value} reservation"
            )

        reason = command.reason or DEFAULT_CANCELLATION_REASON
        cancelled = self.reservations.cancel_reservation(command.reservation_id, reason)

        self.bus.publish_events([
            ReservationCancelled(reservation_id=command.reservation_id, reason=reason),
        ])
        logger.info(f"Reservation {command.reservation_id} cancelled")
        return cancelled


class SyncReservationPaymentHandler:
    """Handler for re-issuing the backend payment sync"""

    def __init__(self, reservations: ReservationGateway):
        self.reservations = reservations

    def handle(self, command: SyncReservationPaymentCommand) -> Reservation:
        logger.info(
            f"Syncing payment {command.payment_reference} "
            f"for reservation {command.reservation_id}"
        )
        reservation = self.reservations.confirm_payment(
            command.reservation_id,
            command.payment_reference,
        )
        logger.info(f"Reservation {command.reservation_id} marked paid ({reservation.status.value})")
        return reservation


def register_command_handlers(bus: MessageBus, reservations: ReservationGateway):
    bus.register_command_handler(
        CancelReservationCommand,
        CancelReservationHandler(reservations, bus).handle,
    )
    bus.register_command_handler(
        SyncReservationPaymentCommand,
        SyncReservationPaymentHandler(reservations).handle,
    )
