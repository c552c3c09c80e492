"""Factories wiring the rentals core to the configured adapters."""

from __future__ import annotations

from django.conf import settings  # type: ignore

from shared.application.message_bus import MessageBus
from apps.rentals.application.availability import AvailabilityChecker
from apps.rentals.application.checkout import CheckoutStateMachine
from apps.rentals.domain.pricing import PricingEngine
from apps.rentals.domain.session import BookingSession
from apps.rentals.infrastructure.booking_api import RentalApiClient
from apps.rentals.infrastructure.stripe_gateway import StripePaymentProcessor


def start_booking_session() -> BookingSession:
    """New session priced in the configured currency"""
    return BookingSession(pricing=PricingEngine(currency=settings.RENTAL_CURRENCY))


def build_availability_checker(client: RentalApiClient | None = None) -> AvailabilityChecker:
    return AvailabilityChecker(client or RentalApiClient.from_settings())


def build_checkout(
    session: BookingSession,
    *,
    client: RentalApiClient | None = None,
    processor: StripePaymentProcessor | None = None,
    bus: MessageBus | None = None,
) -> CheckoutStateMachine:
    return CheckoutStateMachine(
        session,
        reservations=client or RentalApiClient.from_settings(),
        payments=processor or StripePaymentProcessor.from_settings(),
        bus=bus,
    )
