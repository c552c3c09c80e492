from datetime import date
from decimal import Decimal

from shared.domain.value_objects import Money
from apps.rentals import services
from apps.rentals.application.checkout import CheckoutStateMachine
from apps.rentals.domain.checkout import CheckoutState
from apps.rentals.domain.entities import Vehicle
from apps.rentals.infrastructure.booking_api import RentalApiClient
from apps.rentals.infrastructure.stripe_gateway import StripePaymentProcessor


def test_session_is_priced_in_configured_currency(settings):
    settings.RENTAL_CURRENCY = "EUR"

    session = services.start_booking_session()
    session.set_date_range(date(2024, 5, 8), date(2024, 5, 9))
    session.set_vehicle(Vehicle(id="car-1", daily_rate=Money(Decimal("50"), "EUR")))

    assert session.get_price_breakdown().grand_total == Money(Decimal("55"), "EUR")


def test_build_checkout_defaults_to_configured_adapters(session):
    machine = services.build_checkout(session)

    assert isinstance(machine, CheckoutStateMachine)
    assert isinstance(machine.reservations, RentalApiClient)
    assert isinstance(machine.payments, StripePaymentProcessor)
    assert machine.payments.publishable_key == "pk_test_123"
    assert machine.state is CheckoutState.SELECTING_EXTRAS


def test_build_checkout_uses_given_collaborators(session, booking_api, processor, bus):
    machine = services.build_checkout(session, client=booking_api, processor=processor, bus=bus)

    assert machine.reservations is booking_api
    assert machine.payments is processor
    assert machine.bus is bus


def test_build_availability_checker(booking_api):
    assert services.build_availability_checker(booking_api).query is booking_api
