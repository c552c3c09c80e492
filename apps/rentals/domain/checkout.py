"""
Checkout Process Aggregate

Holds the state of one checkout attempt. The transitions here only
validate and record; the remote calls that trigger them are issued by
``apps.rentals.application.checkout.CheckoutStateMachine``.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from shared.domain.base import Aggregate
from shared.domain.value_objects import Money
from apps.rentals.domain.events import (
    CheckoutAbandoned,
    CheckoutConfirmed,
    CheckoutFailed,
    PaymentCaptured,
    PaymentIntentCreated,
    PaymentSyncFailed,
    ReservationCreated,
)
from apps.rentals.domain.exceptions import CheckoutStateError, RentalError


class CheckoutState(Enum):
    """
    Checkout Finite State Machine

    State transitions:
    - SELECTING_EXTRAS -> CREATING_RESERVATION (proceed)
    - SELECTING_EXTRAS -> ABANDONED (cancel, before any remote call)
    - CREATING_RESERVATION -> AWAITING_PAYMENT (reservation created)
    - CREATING_RESERVATION -> FAILED (create call failed)
    - AWAITING_PAYMENT -> FAILED (payment intent failed)
    - AWAITING_PAYMENT -> CONFIRMED (captured and synced)
    - AWAITING_PAYMENT -> PAYMENT_SYNC_PENDING (captured, sync failed)
    - PAYMENT_SYNC_PENDING -> CONFIRMED (sync retried)
    """
    SELECTING_EXTRAS = 'selecting_extras'
    CREATING_RESERVATION = 'creating_reservation'
    AWAITING_PAYMENT = 'awaiting_payment'
    PAYMENT_SYNC_PENDING = 'payment_sync_pending'
    CONFIRMED = 'confirmed'
    FAILED = 'failed'
    ABANDONED = 'abandoned'


TERMINAL_STATES = (CheckoutState.CONFIRMED, CheckoutState.FAILED, CheckoutState.ABANDONED)


@dataclass(eq=False)
class CheckoutProcess(Aggregate):
    """
    CheckoutProcess Aggregate Root

    Key invariants:
    - AWAITING_PAYMENT only with reservation_id
    - PAYMENT_SYNC_PENDING and CONFIRMED only with reservation_id
      and payment_reference
    - last_error is set before any failure transition completes
    """
    state: CheckoutState = CheckoutState.SELECTING_EXTRAS
    reservation_id: str | None = None
    payment_reference: str | None = None
    client_secret: str | None = field(default=None, repr=False)
    payment_intent_id: str | None = None
    last_error: RentalError | None = None
    reservation_total: Money | None = None
    idempotency_key: str = field(default_factory=lambda: uuid4().hex)

    def _require(self, *states: CheckoutState, action: str):
        if self.state not in states:
            allowed = ', '.join(s.value for s in states)
            raise CheckoutStateError(
                f"Cannot {action} from state {self.state.value}. "
                f"Checkout must be in: {allowed}.",
                state=self.state,
            )

    def _move(self, state: CheckoutState):
        self.state = state
        self.touch()

    def begin_reservation(self):
        """SELECTING_EXTRAS -> CREATING_RESERVATION"""
        self._require(CheckoutState.SELECTING_EXTRAS, action='create a reservation')
        self.last_error = None
        self._move(CheckoutState.CREATING_RESERVATION)

    def reservation_created(
        self,
        reservation_id: str,
        vehicle_id: str,
        grand_total: Money,
        reservation_total: Money | None = None,
    ):
        """CREATING_RESERVATION -> AWAITING_PAYMENT"""
        self._require(CheckoutState.CREATING_RESERVATION, action='record a reservation')
        if not reservation_id:
            raise CheckoutStateError("Reservation id is required to await payment", state=self.state)

        self.reservation_id = reservation_id
        self.reservation_total = reservation_total
        self._move(CheckoutState.AWAITING_PAYMENT)

        self.add_event(ReservationCreated(
            reservation_id=reservation_id,
            vehicle_id=vehicle_id,
            grand_total=Decimal(grand_total.amount),
            currency=grand_total.currency,
        ))

    def payment_intent_created(self, client_secret: str, intent_id: str | None = None):
        self._require(CheckoutState.AWAITING_PAYMENT, action='record a payment intent')
        self.client_secret = client_secret
        self.payment_intent_id = intent_id
        self.touch()
        self.add_event(PaymentIntentCreated(reservation_id=self.reservation_id, intent_id=intent_id))

    def payment_declined(self, error: RentalError):
        """Stay in AWAITING_PAYMENT so another card can be tried"""
        self._require(CheckoutState.AWAITING_PAYMENT, action='record a declined payment')
        self.last_error = error
        self.touch()

    def payment_captured(self, payment_reference: str):
        self._require(CheckoutState.AWAITING_PAYMENT, action='record a captured payment')
        if not payment_reference:
            raise CheckoutStateError("Payment reference is required", state=self.state)
        self.payment_reference = payment_reference
        self.touch()
        self.add_event(PaymentCaptured(
            reservation_id=self.reservation_id,
            payment_reference=payment_reference,
        ))

    def confirm(self):
        """AWAITING_PAYMENT / PAYMENT_SYNC_PENDING -> CONFIRMED"""
        self._require(
            CheckoutState.AWAITING_PAYMENT,
            CheckoutState.PAYMENT_SYNC_PENDING,
            action='confirm',
        )
        if not (self.reservation_id and self.payment_reference):
            raise CheckoutStateError(
                "Cannot confirm without both reservation id and payment reference",
                state=self.state,
            )
        self.last_error = None
        self._move(CheckoutState.CONFIRMED)
        self.add_event(CheckoutConfirmed(
            reservation_id=self.reservation_id,
            payment_reference=self.payment_reference,
        ))

    def sync_failed(self, error: RentalError):
        """Payment is captured; only the backend record is stale"""
        self._require(
            CheckoutState.AWAITING_PAYMENT,
            CheckoutState.PAYMENT_SYNC_PENDING,
            action='record a failed payment sync',
        )
        if not (self.reservation_id and self.payment_reference):
            raise CheckoutStateError("Sync can only fail after the payment was captured", state=self.state)
        self.last_error = error
        self._move(CheckoutState.PAYMENT_SYNC_PENDING)
        self.add_event(PaymentSyncFailed(
            reservation_id=self.reservation_id,
            payment_reference=self.payment_reference,
            error=str(error),
        ))

    def fail(self, error: RentalError):
        """CREATING_RESERVATION / AWAITING_PAYMENT -> FAILED"""
        self._require(
            CheckoutState.CREATING_RESERVATION,
            CheckoutState.AWAITING_PAYMENT,
            action='fail',
        )
        self.last_error = error
        self._move(CheckoutState.FAILED)
        self.add_event(CheckoutFailed(
            error_type=type(error).__name__,
            error=str(error),
            reservation_id=self.reservation_id,
        ))

    def abandon(self):
        """SELECTING_EXTRAS -> ABANDONED; nothing remote has happened yet"""
        self._require(CheckoutState.SELECTING_EXTRAS, action='cancel checkout')
        self._move(CheckoutState.ABANDONED)
        self.add_event(CheckoutAbandoned())

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def payment_succeeded(self) -> bool:
        """True once the processor captured the payment, synced or not"""
        return self.payment_reference is not None

    @property
    def is_reserved_unpaid(self) -> bool:
        """A reservation exists remotely but no payment was captured"""
        return self.reservation_id is not None and self.payment_reference is None
