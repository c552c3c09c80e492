from datetime import date
from decimal import Decimal
from unittest import mock

import pytest

from shared.domain.value_objects import Money
from apps.rentals import handlers
from apps.rentals.application.checkout import CheckoutStateMachine
from apps.rentals.domain.checkout import CheckoutProcess, CheckoutState
from apps.rentals.domain.entities import PaymentResult
from apps.rentals.domain.exceptions import (
    CheckoutStateError,
    ConfirmationSyncError,
    GatewayError,
    NotReadyError,
    PaymentDeclinedError,
    PaymentIntentError,
    PaymentProcessorError,
    ReservationCreationError,
)


def test_proceed_without_vehicle_is_refused_without_remote_calls(session, booking_api, processor, bus):
    session.set_date_range(date(2024, 5, 8), date(2024, 5, 10))
    machine = CheckoutStateMachine(session, booking_api, processor, bus=bus)

    with pytest.raises(NotReadyError):
        machine.proceed()

    assert machine.state is CheckoutState.SELECTING_EXTRAS
    assert booking_api.calls == []


def test_proceed_creates_the_reservation(machine, booking_api, bus):
    reservation = machine.proceed()

    assert machine.state is CheckoutState.AWAITING_PAYMENT
    assert machine.reservation_id == reservation.id == "res-1"
    assert machine.process.is_reserved_unpaid
    assert bus.event_names() == ["ReservationCreated"]
    assert bus.published[0].grand_total == Decimal("286")

    _, request = booking_api.calls[0]
    assert request.vehicle_id == "car-1"
    assert request.extra_ids == ("insurance", "gps", "wifi")
    assert request.notes == "Flight lands at 9am"
    assert request.idempotency_key == machine.process.idempotency_key


def test_failed_create_keeps_the_session(machine, booking_api, ready_session, bus):
    booking_api.create_error = GatewayError("Car is not available", status_code=400)

    with pytest.raises(ReservationCreationError) as exc_info:
        machine.proceed()

    assert not exc_info.value.outcome_unknown
    assert machine.state is CheckoutState.FAILED
    assert machine.last_error is exc_info.value
    assert machine.reservation_id is None
    assert ready_session.is_checkout_ready()
    assert ready_session.extra_ids == ["insurance", "gps", "wifi"]
    assert bus.event_names() == ["CheckoutFailed"]


def test_create_timeout_is_reported_as_unknown_outcome(machine, booking_api):
    booking_api.create_error = GatewayError("timed out", timed_out=True)

    with pytest.raises(ReservationCreationError) as exc_info:
        machine.proceed()

    assert exc_info.value.outcome_unknown
    assert machine.state is CheckoutState.FAILED


def test_proceed_twice_is_a_state_error(machine):
    machine.proceed()

    with pytest.raises(CheckoutStateError) as exc_info:
        machine.proceed()

    assert exc_info.value.state is CheckoutState.AWAITING_PAYMENT


def test_successful_checkout(machine, booking_api, processor, ready_session, bus):
    machine.proceed()

    process = machine.pay("pm_card_visa")

    assert process.state is CheckoutState.CONFIRMED
    assert process.reservation_id == "res-1"
    assert process.payment_reference == "pi_res-1"
    assert process.last_error is None
    assert processor.calls == [("pi_res-1_secret_xyz", "pm_card_visa")]
    assert booking_api.call_names() == ["create", "intent", "confirm"]
    assert not ready_session.is_checkout_ready()
    assert bus.event_names() == [
        "ReservationCreated",
        "PaymentIntentCreated",
        "PaymentCaptured",
        "CheckoutConfirmed",
    ]


def test_pay_before_reservation_is_a_state_error(machine, processor):
    with pytest.raises(CheckoutStateError):
        machine.pay("pm_card_visa")

    assert processor.calls == []


def test_intent_failure_fails_with_the_reservation_id(machine, booking_api, processor, bus):
    machine.proceed()
    booking_api.intent_error = GatewayError("Stripe unavailable", status_code=500)

    with pytest.raises(PaymentIntentError) as exc_info:
        machine.pay("pm_card_visa")

    assert exc_info.value.reservation_id == "res-1"
    assert machine.state is CheckoutState.FAILED
    assert machine.reservation_id == "res-1"
    assert processor.calls == []
    failed = bus.published[-1]
    assert type(failed).__name__ == "CheckoutFailed"
    assert failed.reservation_id == "res-1"


def test_declined_card_can_be_retried_with_the_same_intent(machine, booking_api, processor):
    machine.proceed()
    processor.outcomes.append(PaymentDeclinedError("Your card was declined.", decline_code="card_declined"))

    with pytest.raises(PaymentDeclinedError):
        machine.pay("pm_card_chargeDeclined")

    assert machine.state is CheckoutState.AWAITING_PAYMENT
    assert isinstance(machine.last_error, PaymentDeclinedError)
    assert machine.payment_reference is None

    machine.pay("pm_card_visa")

    assert machine.state is CheckoutState.CONFIRMED
    assert booking_api.call_names().count("intent") == 1


def test_payment_not_succeeded_is_treated_as_decline(machine, processor):
    machine.proceed()
    processor.outcomes.append(PaymentResult(status="requires_action", payment_reference="pi_res-1"))

    with pytest.raises(PaymentDeclinedError) as exc_info:
        machine.pay("pm_card_threeDSecure2Required")

    assert exc_info.value.status == "requires_action"
    assert machine.state is CheckoutState.AWAITING_PAYMENT
    assert not machine.process.payment_succeeded


def test_processor_outage_keeps_awaiting_payment(machine, processor):
    machine.proceed()
    processor.outcomes.append(GatewayError("connection reset", timed_out=True))

    with pytest.raises(PaymentProcessorError) as exc_info:
        machine.pay("pm_card_visa")

    assert exc_info.value.outcome_unknown
    assert machine.state is CheckoutState.AWAITING_PAYMENT


def test_sync_failure_is_not_a_payment_failure(machine, booking_api, bus):
    machine.proceed()
    booking_api.confirm_errors.append(GatewayError("Bad gateway", status_code=502))

    with pytest.raises(ConfirmationSyncError) as exc_info:
        machine.pay("pm_card_visa")

    error = exc_info.value
    assert error.reservation_id == "res-1"
    assert error.payment_reference == "pi_res-1"
    assert machine.state is CheckoutState.PAYMENT_SYNC_PENDING
    assert machine.process.payment_succeeded
    assert machine.last_error is error
    assert bus.event_names()[-1] == "PaymentSyncFailed"

    with pytest.raises(CheckoutStateError):
        machine.pay("pm_card_visa")


def test_retry_payment_sync_confirms(machine, booking_api):
    machine.proceed()
    booking_api.confirm_errors.extend([GatewayError("down"), GatewayError("still down")])

    with pytest.raises(ConfirmationSyncError):
        machine.pay("pm_card_visa")
    with pytest.raises(ConfirmationSyncError):
        machine.retry_payment_sync()

    assert machine.state is CheckoutState.PAYMENT_SYNC_PENDING

    machine.retry_payment_sync()

    assert machine.state is CheckoutState.CONFIRMED
    assert machine.last_error is None
    assert booking_api.call_names().count("confirm") == 3


def test_retry_payment_sync_only_after_a_failed_sync(machine):
    with pytest.raises(CheckoutStateError):
        machine.retry_payment_sync()


def test_reservation_total_mismatch_does_not_block_checkout(machine, booking_api):
    booking_api.total_price = Money(Decimal("300"))

    machine.proceed()

    assert machine.state is CheckoutState.AWAITING_PAYMENT
    assert machine.process.reservation_total == Money(Decimal("300"))


def test_cancel_before_any_remote_call(machine, booking_api, ready_session, bus):
    machine.cancel()

    assert machine.state is CheckoutState.ABANDONED
    assert not ready_session.is_checkout_ready()
    assert booking_api.calls == []
    assert bus.event_names() == ["CheckoutAbandoned"]


def test_cancel_after_reservation_is_refused(machine):
    machine.proceed()

    with pytest.raises(CheckoutStateError):
        machine.cancel()

    assert machine.state is CheckoutState.AWAITING_PAYMENT


def test_restart_after_failure_uses_a_fresh_process(machine, booking_api):
    booking_api.create_error = GatewayError("Server error", status_code=500)
    with pytest.raises(ReservationCreationError):
        machine.proceed()
    failed = machine.process

    machine.restart()
    booking_api.create_error = None
    machine.proceed()

    assert machine.process is not failed
    assert machine.state is CheckoutState.AWAITING_PAYMENT
    assert failed.state is CheckoutState.FAILED
    first_key = booking_api.calls[0][1].idempotency_key
    second_key = booking_api.calls[1][1].idempotency_key
    assert first_key != second_key


def test_restart_is_refused_once_money_may_have_moved(machine):
    machine.proceed()

    with pytest.raises(CheckoutStateError):
        machine.restart()


def test_confirm_requires_both_identifiers():
    process = CheckoutProcess()
    process.begin_reservation()
    process.reservation_created("res-9", vehicle_id="car-1", grand_total=Money(Decimal("10")))

    with pytest.raises(CheckoutStateError):
        process.confirm()

    assert process.state is CheckoutState.AWAITING_PAYMENT


def test_reservation_requires_an_id():
    process = CheckoutProcess()
    process.begin_reservation()

    with pytest.raises(CheckoutStateError):
        process.reservation_created("", vehicle_id="car-1", grand_total=Money(Decimal("10")))

    assert process.state is CheckoutState.CREATING_RESERVATION


def test_background_sync_is_scheduled_not_run_inline(machine, booking_api, bus, settings):
    settings.PAYMENT_SYNC_RETRY_BACKOFF = 30
    handlers.register_event_handlers(bus)
    booking_api.confirm_errors.append(GatewayError("Bad gateway", status_code=502))

    with mock.patch("apps.rentals.tasks.sync_reservation_payment.apply_async") as apply_async:
        machine.proceed()
        with pytest.raises(ConfirmationSyncError):
            machine.pay("pm_card_visa")

    apply_async.assert_called_once_with(args=("res-1", "pi_res-1"), countdown=30)
    assert booking_api.call_names() == ["create", "intent", "confirm"]
    assert machine.state is CheckoutState.PAYMENT_SYNC_PENDING


def test_retry_payment_sync_picks_up_the_background_sync(machine, booking_api):
    machine.proceed()
    booking_api.confirm_errors.append(GatewayError("Bad gateway", status_code=502))
    with pytest.raises(ConfirmationSyncError):
        machine.pay("pm_card_visa")

    booking_api.confirm_payment("res-1", "pi_res-1")
    machine.retry_payment_sync()

    assert machine.state is CheckoutState.CONFIRMED
    assert booking_api.call_names() == ["create", "intent", "confirm", "confirm", "payment_status"]


def test_retry_payment_sync_resends_when_status_is_unavailable(machine, booking_api):
    machine.proceed()
    booking_api.confirm_errors.append(GatewayError("Bad gateway", status_code=502))
    with pytest.raises(ConfirmationSyncError):
        machine.pay("pm_card_visa")
    booking_api.payment_status_error = GatewayError("down")

    machine.retry_payment_sync()

    assert machine.state is CheckoutState.CONFIRMED
    assert booking_api.call_names()[-2:] == ["payment_status", "confirm"]


def test_charge_captured_by_an_unobserved_attempt_is_not_confirmed_again(machine, booking_api, processor, bus):
    machine.proceed()
    processor.outcomes.append(GatewayError("read timed out", timed_out=True))
    with pytest.raises(PaymentProcessorError):
        machine.pay("pm_card_visa")
    booking_api.processor_status = "succeeded"

    machine.pay("pm_card_visa")

    assert machine.state is CheckoutState.CONFIRMED
    assert machine.payment_reference == "pi_res-1"
    assert len(processor.calls) == 1
    assert booking_api.call_names() == ["create", "intent", "payment_status", "confirm"]
    assert "PaymentCaptured" in bus.event_names()


def test_charge_already_recorded_by_backend_confirms_without_sync(machine, booking_api, processor):
    machine.proceed()
    processor.outcomes.append(GatewayError("Stripe returned 503", status_code=503))
    with pytest.raises(PaymentProcessorError) as exc_info:
        machine.pay("pm_card_visa")
    assert exc_info.value.outcome_unknown
    booking_api.confirm_payment("res-1", "pi_res-1")

    machine.pay("pm_card_visa")

    assert machine.state is CheckoutState.CONFIRMED
    assert len(processor.calls) == 1
    assert booking_api.call_names().count("confirm") == 1


def test_uncaptured_charge_is_confirmed_again(machine, booking_api, processor):
    machine.proceed()
    processor.outcomes.append(GatewayError("read timed out", timed_out=True))
    with pytest.raises(PaymentProcessorError):
        machine.pay("pm_card_visa")
    booking_api.processor_status = "requires_payment_method"

    machine.pay("pm_card_visa")

    assert machine.state is CheckoutState.CONFIRMED
    assert len(processor.calls) == 2
    assert booking_api.call_names() == ["create", "intent", "payment_status", "confirm"]


def test_client_error_from_processor_is_not_an_unknown_outcome(machine, booking_api, processor):
    machine.proceed()
    processor.outcomes.append(GatewayError("No such payment_method", status_code=400))

    with pytest.raises(PaymentProcessorError) as exc_info:
        machine.pay("pm_bogus")

    assert not exc_info.value.outcome_unknown
    machine.pay("pm_card_visa")
    assert "payment_status" not in booking_api.call_names()
