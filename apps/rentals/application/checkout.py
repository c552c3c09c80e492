"""
Checkout State Machine

Drives a BookingSession through reservation creation and payment:

    machine = CheckoutStateMachine(session, reservations, payments)
    machine.proceed()              # creates the pending reservation
    machine.pay("pm_card_visa")    # intent -> card confirmation -> backend sync

Reservation creation and payment are separate remote calls, so the
"reserved but unpaid" and "paid but not synced" conditions are explicit
states of the CheckoutProcess rather than the absence of something.
Nothing is retried automatically; every remote failure is recorded on
``last_error`` before the transition completes and then re-raised.
"""

from __future__ import annotations

import structlog

from shared.application.message_bus import MessageBus, message_bus
from apps.rentals.domain.checkout import CheckoutProcess, CheckoutState
from apps.rentals.domain.entities import PaymentStatus, Reservation, ReservationRequest
from apps.rentals.domain.exceptions import (
    CheckoutStateError,
    ConfirmationSyncError,
    GatewayError,
    NotReadyError,
    PaymentDeclinedError,
    PaymentIntentError,
    PaymentProcessorError,
    RentalError,
    ReservationCreationError,
)
from apps.rentals.domain.ports import PaymentProcessor, ReservationGateway
from apps.rentals.domain.pricing import PriceBreakdown
from apps.rentals.domain.session import BookingSession

logger = structlog.get_logger(__name__)

RESTARTABLE_STATES = (
    CheckoutState.SELECTING_EXTRAS,
    CheckoutState.FAILED,
    CheckoutState.ABANDONED,
)


class CheckoutStateMachine:
    """Owns at most one active CheckoutProcess for one BookingSession"""

    def __init__(
        self,
        session: BookingSession,
        reservations: ReservationGateway,
        payments: PaymentProcessor,
        bus: MessageBus | None = None,
    ):
        self.session = session
        self.reservations = reservations
        self.payments = payments
        self.bus = bus if bus is not None else message_bus
        self.process = CheckoutProcess()
        self._log = self._bind_logger()

    # ===== Inspection =====

    @property
    def state(self) -> CheckoutState:
        return self.process.state

    @property
    def last_error(self) -> RentalError | None:
        return self.process.last_error

    @property
    def reservation_id(self) -> str | None:
        return self.process.reservation_id

    @property
    def payment_reference(self) -> str | None:
        return self.process.payment_reference

    # ===== Transitions =====

    def proceed(self) -> Reservation:
        """
        Create the remote reservation (SELECTING_EXTRAS -> AWAITING_PAYMENT)

        Raises:
            CheckoutStateError: not in SELECTING_EXTRAS
            NotReadyError: dates or vehicle missing; state unchanged
            ReservationCreationError: create call failed; state is FAILED
        """
        self._require(CheckoutState.SELECTING_EXTRAS, action='proceed')
        if not self.session.is_checkout_ready():
            raise NotReadyError("Select rental dates and a vehicle before checkout")

        breakdown = self.session.get_price_breakdown()
        vehicle = self.session.selected_vehicle
        request = ReservationRequest(
            vehicle_id=vehicle.id,
            dates=self.session.date_range,
            extra_ids=tuple(self.session.extra_ids),
            pickup_location=self.session.pickup_location,
            dropoff_location=self.session.dropoff_location,
            notes=self.session.notes,
            idempotency_key=self.process.idempotency_key,
        )

        self.process.begin_reservation()
        self._log.info(
            "reservation_create_started",
            vehicle_id=vehicle.id,
            dates=str(request.dates),
            grand_total=str(breakdown.grand_total.amount),
        )

        try:
            reservation = self.reservations.create_reservation(request)
        except GatewayError as e:
            if e.timed_out:
                message = "Reservation request timed out; the reservation may have been created"
            else:
                message = f"Could not create reservation: {e}"
            error = ReservationCreationError(message, outcome_unknown=e.timed_out)
            self._log.error("reservation_create_failed", error=str(e), outcome_unknown=e.timed_out)
            self.process.fail(error)
            self._publish()
            raise error from e

        self.process.reservation_created(
            reservation.id,
            vehicle_id=vehicle.id,
            grand_total=breakdown.grand_total,
            reservation_total=reservation.total_price,
        )
        self._log = self._bind_logger()
        self._log.info("reservation_created")
        self._compare_totals(breakdown, reservation)
        self._publish()
        return reservation

    def pay(self, payment_method: str) -> CheckoutProcess:
        """
        Collect payment for the created reservation

        The payment intent is created once per process; a declined card
        keeps the process in AWAITING_PAYMENT and reuses the intent. After
        an attempt with an unknown outcome the backend is asked first, and
        a charge that already went through is recorded instead of being
        confirmed again.

        Raises:
            CheckoutStateError: not in AWAITING_PAYMENT
            PaymentIntentError: intent creation failed; state is FAILED
            PaymentDeclinedError: card declined; state unchanged
            PaymentProcessorError: processor unreachable; state unchanged
            ConfirmationSyncError: paid, backend not updated; state is PAYMENT_SYNC_PENDING
        """
        self._require(CheckoutState.AWAITING_PAYMENT, action='pay')

        if self.process.client_secret is None:
            self._create_payment_intent()
        elif self._outcome_unknown() and self._catch_up_with_captured_payment():
            return self.process

        try:
            result = self.payments.confirm_card_payment(self.process.client_secret, payment_method)
        except PaymentDeclinedError as e:
            self._log.warning("payment_declined", decline_code=e.decline_code, error=str(e))
            self.process.payment_declined(e)
            raise
        except GatewayError as e:
            error = PaymentProcessorError(
                f"Payment processor unavailable: {e}",
                outcome_unknown=e.timed_out or e.status_code is None or e.status_code >= 500,
            )
            self._log.error("payment_processor_failed", error=str(e))
            self.process.payment_declined(error)
            raise error from e

        if not result.succeeded:
            error = PaymentDeclinedError(
                f"Payment not successful. Status: {result.status}",
                status=result.status,
            )
            self._log.warning("payment_not_succeeded", status=result.status)
            self.process.payment_declined(error)
            raise error

        self.process.payment_captured(result.payment_reference)
        self._log = self._bind_logger()
        self._log.info("payment_captured")
        self.session.reset()
        self._publish()

        self._sync_payment()
        return self.process

    def retry_payment_sync(self) -> CheckoutProcess:
        """
        PAYMENT_SYNC_PENDING -> CONFIRMED

        The background sync may already have marked the reservation paid,
        so the backend is asked first and the sync is only re-sent when it
        still shows the payment as outstanding. Raises ConfirmationSyncError
        again on failure.
        """
        self._require(CheckoutState.PAYMENT_SYNC_PENDING, action='retry the payment sync')
        status = self._fetch_payment_status()
        if status is not None and status.is_paid:
            self._log.info("payment_already_synced")
            self._confirm()
        else:
            self._sync_payment()
        return self.process

    def cancel(self):
        """Abandon the flow; only possible before any remote call"""
        self.process.abandon()
        self.session.reset()
        self._log.info("checkout_abandoned")
        self._publish()

    def restart(self) -> CheckoutProcess:
        """Start a fresh attempt; the session selections are kept"""
        self._require(*RESTARTABLE_STATES, action='restart checkout')
        previous = self.process
        self.process = CheckoutProcess()
        self._log = self._bind_logger()
        self._log.info(
            "checkout_restarted",
            previous_checkout_id=str(previous.id),
            previous_reservation_id=previous.reservation_id,
        )
        return self.process

    # ===== Internals =====

    def _create_payment_intent(self):
        reservation_id = self.process.reservation_id
        try:
            intent = self.reservations.create_payment_intent(reservation_id)
        except GatewayError as e:
            error = PaymentIntentError(
                f"Could not start payment for reservation {reservation_id}: {e}",
                reservation_id=reservation_id,
            )
            self._log.error("payment_intent_failed", error=str(e))
            self.process.fail(error)
            self._publish()
            raise error from e

        self.process.payment_intent_created(intent.client_secret, intent.reference)
        self._log.info("payment_intent_created", intent_id=intent.reference)
        self._publish()

    def _outcome_unknown(self) -> bool:
        error = self.process.last_error
        return isinstance(error, PaymentProcessorError) and error.outcome_unknown

    def _catch_up_with_captured_payment(self) -> bool:
        """
        Record a charge that an earlier, unobserved attempt captured

        Returns False when the charge did not go through (or cannot be
        verified), in which case confirming the same intent again is safe.
        """
        status = self._fetch_payment_status()
        reference = self.process.payment_intent_id
        if status is None or not status.captured or not reference:
            return False

        self.process.payment_captured(reference)
        self._log = self._bind_logger()
        self._log.info(
            "payment_captured_on_earlier_attempt",
            processor_status=status.processor_status,
            backend_status=status.payment_status,
        )
        self.session.reset()
        self._publish()

        if status.is_paid:
            self._confirm()
        else:
            self._sync_payment()
        return True

    def _fetch_payment_status(self) -> PaymentStatus | None:
        try:
            return self.reservations.get_payment_status(self.process.reservation_id)
        except GatewayError as e:
            self._log.warning("payment_status_unavailable", error=str(e))
            return None

    def _sync_payment(self):
        reservation_id = self.process.reservation_id
        payment_reference = self.process.payment_reference
        try:
            self.reservations.confirm_payment(reservation_id, payment_reference)
        except GatewayError as e:
            error = ConfirmationSyncError(
                f"Payment {payment_reference} succeeded but reservation {reservation_id} "
                f"could not be marked paid: {e}",
                reservation_id=reservation_id,
                payment_reference=payment_reference,
            )
            self._log.error("payment_sync_failed", error=str(e))
            self.process.sync_failed(error)
            self._publish()
            raise error from e

        self._confirm()

    def _confirm(self):
        self.process.confirm()
        self._log.info("checkout_confirmed")
        self._publish()

    def _compare_totals(self, breakdown: PriceBreakdown, reservation: Reservation):
        if reservation.total_price is None:
            return
        local_total = breakdown.grand_total.rounded()
        remote_total = reservation.total_price.rounded()
        if local_total != remote_total:
            self._log.warning(
                "reservation_total_mismatch",
                local_total=str(local_total.amount),
                remote_total=str(remote_total.amount),
            )

    def _require(self, *states: CheckoutState, action: str):
        if self.process.state not in states:
            allowed = ', '.join(s.value for s in states)
            raise CheckoutStateError(
                f"Cannot {action} from state {self.process.state.value}. "
                f"Checkout must be in: {allowed}.",
                state=self.process.state,
            )

    def _publish(self):
        self.bus.publish_events(self.process.pull_events())

    def _bind_logger(self):
        return logger.bind(
            checkout_id=str(self.process.id),
            reservation_id=self.process.reservation_id,
            payment_reference=self.process.payment_reference,
        )
