"""
Rental Domain Errors

Local validation errors never reach a remote boundary; remote errors
carry enough context for the caller to choose between retrying from
scratch and contacting support with a reservation id.
"""


class RentalError(Exception):
    """Base class for every error raised by the rentals context."""


class InvalidRangeError(RentalError, ValueError):
    """Dates are missing, malformed or reversed."""


class CurrencyMismatchError(RentalError, ValueError):
    """Vehicle and extras of one session are priced in different currencies."""


class NotReadyError(RentalError):
    """Checkout attempted before dates and vehicle are selected."""


class CheckoutStateError(RentalError):
    """Operation is not allowed in the current checkout state."""

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.state = state


class GatewayError(RentalError):
    """
    Transport or server failure reported by a boundary adapter

    ``timed_out`` is set when no response was observed, meaning the
    remote side may or may not have applied the request.
    """

    def __init__(self, message: str, status_code: int | None = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class BoundaryUnavailableError(RentalError):
    """Availability query failed; says nothing about the vehicle itself."""


class ReservationCreationError(RentalError):
    """Remote reservation create call failed or timed out."""

    def __init__(self, message: str, outcome_unknown: bool = False):
        super().__init__(message)
        self.outcome_unknown = outcome_unknown


class PaymentIntentError(RentalError):
    """Payment intent could not be created for an existing reservation."""

    def __init__(self, message: str, reservation_id: str | None = None):
        super().__init__(message)
        self.reservation_id = reservation_id


class PaymentDeclinedError(RentalError):
    """The processor declined the card or did not capture the payment."""

    def __init__(self, message: str, decline_code: str | None = None, status: str | None = None):
        super().__init__(message)
        self.decline_code = decline_code
        self.status = status


class PaymentProcessorError(RentalError):
    """
    The processor could not be reached while confirming the card

    The charge may or may not have happened; confirming the same
    intent again is safe, creating a new one is not.
    """

    def __init__(self, message: str, outcome_unknown: bool = True):
        super().__init__(message)
        self.outcome_unknown = outcome_unknown


class ConfirmationSyncError(RentalError):
    """
    Payment captured but the backend was not told about it

    This is not a payment failure: the user must not be asked to pay again.
    """

    def __init__(self, message: str, reservation_id: str, payment_reference: str):
        super().__init__(message)
        self.reservation_id = reservation_id
        self.payment_reference = payment_reference


class ReservationNotCancellableError(RentalError):
    """Reservation is already completed or cancelled."""
