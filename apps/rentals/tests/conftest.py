from datetime import date
from decimal import Decimal

import pytest

from shared.application.message_bus import MessageBus
from shared.domain.value_objects import Money
from apps.rentals.application.checkout import CheckoutStateMachine
from apps.rentals.domain.entities import (
    Availability,
    Extra,
    PaymentIntent,
    PaymentResult,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Vehicle,
)
from apps.rentals.domain.ports import AvailabilityQuery, PaymentProcessor, ReservationGateway
from apps.rentals.domain.session import BookingSession


class FakeBookingApi(AvailabilityQuery, ReservationGateway):
    """In-memory booking API; set the *_error attributes to make calls fail."""

    def __init__(self):
        self.calls = []
        self.availability = Availability(available=True)
        self.availability_error = None
        self.create_error = None
        self.intent_error = None
        self.confirm_errors = []
        self.cancel_error = None
        self.total_price = None
        self.processor_status = None
        self.payment_status_error = None
        self.reservations = {}

    def query_availability(self, vehicle_id, start_date, end_date):
        self.calls.append(("availability", vehicle_id, start_date, end_date))
        if self.availability_error:
            raise self.availability_error
        return self.availability

    def create_reservation(self, request):
        self.calls.append(("create", request))
        if self.create_error:
            raise self.create_error
        reservation = Reservation(
            id=f"res-{len(self.reservations) + 1}",
            status=ReservationStatus.PENDING,
            total_price=self.total_price,
        )
        self.reservations[reservation.id] = reservation
        return reservation

    def create_payment_intent(self, reservation_id):
        self.calls.append(("intent", reservation_id))
        if self.intent_error:
            raise self.intent_error
        return PaymentIntent(
            client_secret=f"pi_{reservation_id}_secret_xyz",
            intent_id=f"pi_{reservation_id}",
        )

    def confirm_payment(self, reservation_id, payment_reference):
        self.calls.append(("confirm", reservation_id, payment_reference))
        if self.confirm_errors:
            raise self.confirm_errors.pop(0)
        reservation = Reservation(
            id=reservation_id,
            status=ReservationStatus.CONFIRMED,
            payment_status="paid",
        )
        self.reservations[reservation_id] = reservation
        return reservation

    def cancel_reservation(self, reservation_id, reason):
        self.calls.append(("cancel", reservation_id, reason))
        if self.cancel_error:
            raise self.cancel_error
        reservation = Reservation(id=reservation_id, status=ReservationStatus.CANCELLED)
        self.reservations[reservation_id] = reservation
        return reservation

    def get_reservation(self, reservation_id):
        self.calls.append(("get", reservation_id))
        return self.reservations[reservation_id]

    def get_payment_status(self, reservation_id):
        self.calls.append(("payment_status", reservation_id))
        if self.payment_status_error:
            raise self.payment_status_error
        reservation = self.reservations[reservation_id]
        return PaymentStatus(
            reservation_id=reservation_id,
            payment_status=reservation.payment_status,
            processor_status=self.processor_status,
        )

    def call_names(self):
        return [call[0] for call in self.calls]


class FakeProcessor(PaymentProcessor):
    """Succeeds by default; queue PaymentResult or exceptions in ``outcomes``."""

    def __init__(self):
        self.calls = []
        self.outcomes = []

    def confirm_card_payment(self, client_secret, payment_method):
        self.calls.append((client_secret, payment_method))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        intent_id = client_secret.split("_secret_")[0]
        return PaymentResult(status="succeeded", payment_reference=intent_id)


class RecordingBus(MessageBus):
    def __init__(self):
        super().__init__()
        self.published = []

    def publish_events(self, events):
        events = list(events)
        self.published.extend(events)
        super().publish_events(events)

    def event_names(self):
        return [type(event).__name__ for event in self.published]


@pytest.fixture
def vehicle():
    return Vehicle(id="car-1", daily_rate=Money(Decimal("100")), brand="Toyota", model="Corolla")


@pytest.fixture
def extras():
    return [
        Extra(id="insurance", name="Full Coverage Insurance", daily_rate=Money(Decimal("10"))),
        Extra(id="gps", name="GPS Navigation", daily_rate=Money(Decimal("10"))),
        Extra(id="wifi", name="WiFi Hotspot", daily_rate=Money(Decimal("10"))),
    ]


@pytest.fixture
def session():
    return BookingSession()


@pytest.fixture
def ready_session(session, vehicle, extras):
    session.set_date_range(date(2024, 5, 8), date(2024, 5, 10))
    session.set_vehicle(vehicle)
    for extra in extras:
        session.toggle_extra(extra)
    session.set_notes("Flight lands at 9am")
    return session


@pytest.fixture
def booking_api():
    return FakeBookingApi()


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def machine(ready_session, booking_api, processor, bus):
    return CheckoutStateMachine(ready_session, booking_api, processor, bus=bus)

