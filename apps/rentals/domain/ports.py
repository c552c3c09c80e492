"""
Boundary Ports

Abstract contracts for the external collaborators of the checkout core.
Adapters in ``apps.rentals.infrastructure`` implement them against the
REST booking API and Stripe; tests implement them with in-memory fakes.

Every port raises ``GatewayError`` on transport or server failure.
"""

from abc import ABC, abstractmethod
from datetime import date

from apps.rentals.domain.entities import (
    Availability,
    PaymentIntent,
    PaymentResult,
    PaymentStatus,
    Reservation,
    ReservationRequest,
)


class AvailabilityQuery(ABC):

    @abstractmethod
    def query_availability(self, vehicle_id: str, start_date: date, end_date: date) -> Availability:
        """Ask whether the vehicle is free for the period"""


class ReservationGateway(ABC):
    """Reservation and payment-sync side of the booking API"""

    @abstractmethod
    def create_reservation(self, request: ReservationRequest) -> Reservation:
        """Create a pending reservation; called at most once per checkout attempt"""

    @abstractmethod
    def create_payment_intent(self, reservation_id: str) -> PaymentIntent:
        """Obtain a processor client secret for the reservation"""

    @abstractmethod
    def confirm_payment(self, reservation_id: str, payment_reference: str) -> Reservation:
        """Mark the reservation paid after the processor captured the payment"""

    @abstractmethod
    def cancel_reservation(self, reservation_id: str, reason: str) -> Reservation:
        """Cancel an existing reservation with a user-facing reason"""

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Reservation:
        """Fetch the current backend record of the reservation"""

    @abstractmethod
    def get_payment_status(self, reservation_id: str) -> PaymentStatus:
        """
        Backend and processor view of the reservation's payment

        Used to find out whether an attempt whose outcome was not
        observed actually captured the charge.
        """


class PaymentProcessor(ABC):

    @abstractmethod
    def confirm_card_payment(self, client_secret: str, payment_method: str) -> PaymentResult:
        """
        Confirm the intent with an opaque payment method

        Raises PaymentDeclinedError for card-level declines and
        GatewayError when the processor could not be reached.
        """
