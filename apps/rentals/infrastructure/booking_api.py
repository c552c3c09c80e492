"""
Booking API client

REST adapter for the rental backend: availability, reservations,
payment intents, payment status and payment sync. Every failure
(network, timeout, HTTP error, ``success: false``, malformed body)
becomes a GatewayError.
"""

import logging
from typing import List

import requests
from django.conf import settings

from shared.domain.value_objects import Money
from apps.rentals.domain.entities import (
    Availability,
    Extra,
    PaymentIntent,
    PaymentStatus,
    Reservation,
    ReservationRequest,
    ReservationStatus,
)
from apps.rentals.domain.exceptions import GatewayError
from apps.rentals.domain.ports import AvailabilityQuery, ReservationGateway
from apps.rentals.infrastructure.serializers import (
    AvailabilitySerializer,
    BookingSerializer,
    EnvelopeSerializer,
    ExtraSerializer,
    PaymentIntentSerializer,
    PaymentStatusSerializer,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class RentalApiClient(AvailabilityQuery, ReservationGateway):
    """
    Thin wrapper over the booking REST API

    Usage:
        client = RentalApiClient.from_settings()
        client.query_availability("car-1", date(2024, 5, 8), date(2024, 5, 10))
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        currency: str = 'USD',
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.currency = currency
        self.http = session or requests.Session()
        self.http.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if token:
            self.http.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_settings(cls, token: str | None = None) -> 'RentalApiClient':
        return cls(
            base_url=settings.RENTAL_API_BASE_URL,
            token=token or settings.RENTAL_API_TOKEN,
            timeout=settings.RENTAL_API_TIMEOUT,
            currency=settings.RENTAL_CURRENCY,
        )

    # ===== Availability =====

    def query_availability(self, vehicle_id, start_date, end_date) -> Availability:
        data = self._request(
            "GET",
            f"cars/{vehicle_id}/availability",
            params={
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
            },
        )
        validated = self._validate(AvailabilitySerializer, data, "availability")
        return Availability(
            available=validated["available"],
            reason=validated.get("reason") or None,
        )

    # ===== Reservations =====

    def create_reservation(self, request: ReservationRequest) -> Reservation:
        headers = {}
        if request.idempotency_key:
            headers["Idempotency-Key"] = request.idempotency_key

        data = self._request(
            "POST",
            "bookings",
            json={
                "carId": request.vehicle_id,
                "startDate": request.start_date.isoformat(),
                "endDate": request.end_date.isoformat(),
                "extras": list(request.extra_ids),
                "pickupLocation": request.pickup_location,
                "dropoffLocation": request.dropoff_location,
                "notes": request.notes,
            },
            headers=headers,
        )
        reservation = self._to_reservation(data.get("booking"), "create reservation")
        logger.info(f"Reservation {reservation.id} created for vehicle {request.vehicle_id}")
        return reservation

    def get_reservation(self, reservation_id: str) -> Reservation:
        data = self._request("GET", f"bookings/{reservation_id}")
        return self._to_reservation(data.get("booking"), "get reservation")

    def cancel_reservation(self, reservation_id: str, reason: str) -> Reservation:
        data = self._request("PUT", f"bookings/{reservation_id}/cancel", json={"reason": reason})
        return self._to_reservation(data.get("booking"), "cancel reservation")

    def list_extras(self) -> List[Extra]:
        data = self._request("GET", "extras")
        serializer = ExtraSerializer(data=data.get("extras", []), many=True)
        if not serializer.is_valid():
            raise GatewayError(f"Malformed extras list: {serializer.errors}")
        return [
            Extra(
                id=item["_id"],
                name=item["name"],
                description=item["description"],
                daily_rate=Money(item["pricePerDay"], self.currency),
                category=item["category"],
            )
            for item in serializer.validated_data
            if item["available"]
        ]

    # ===== Payments =====

    def create_payment_intent(self, reservation_id: str) -> PaymentIntent:
        data = self._request("POST", "payments/create-intent", json={"bookingId": reservation_id})
        validated = self._validate(PaymentIntentSerializer, data, "create payment intent")
        amount = validated.get("amount")
        return PaymentIntent(
            client_secret=validated["clientSecret"],
            intent_id=validated.get("paymentIntentId"),
            amount=Money(amount, self.currency) if amount is not None else None,
        )

    def confirm_payment(self, reservation_id: str, payment_reference: str) -> Reservation:
        data = self._request(
            "POST",
            "payments/confirm",
            json={"bookingId": reservation_id, "paymentIntentId": payment_reference},
        )
        if data.get("booking") is None:
            return Reservation(
                id=reservation_id,
                status=ReservationStatus.CONFIRMED,
                payment_status='paid',
            )
        return self._to_reservation(data["booking"], "confirm payment")

    def get_payment_status(self, reservation_id: str) -> PaymentStatus:
        data = self._request("GET", f"payments/{reservation_id}/status")
        validated = self._validate(PaymentStatusSerializer, data, "payment status")
        amount = validated.get("amount")
        return PaymentStatus(
            reservation_id=validated["bookingId"],
            payment_status=validated["paymentStatus"],
            processor_status=validated.get("stripeStatus") or None,
            amount=Money(amount, self.currency) if amount is not None else None,
        )

    # ===== HTTP plumbing =====

    def _request(self, method: str, path: str, *, params=None, json=None, headers=None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout calling booking API {method} {path}: {e}")
            raise GatewayError(f"Booking API timed out on {method} {path}", timed_out=True) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error calling booking API {method} {path}: {e}")
            raise GatewayError(f"Could not reach booking API: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        message = payload.get("message") if isinstance(payload, dict) else None
        if not response.ok:
            logger.error(f"Booking API {method} {path} returned HTTP {response.status_code}: {message}")
            raise GatewayError(
                message or f"Booking API {method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        envelope = EnvelopeSerializer(data=payload if isinstance(payload, dict) else {})
        if not envelope.is_valid():
            raise GatewayError(
                f"Malformed response from {method} {path}: {envelope.errors}",
                status_code=response.status_code,
            )
        if not envelope.validated_data["success"]:
            raise GatewayError(
                message or f"Booking API {method} {path} reported failure",
                status_code=response.status_code,
            )
        return envelope.validated_data["data"]

    def _validate(self, serializer_class, data, operation: str) -> dict:
        serializer = serializer_class(data=data)
        if not serializer.is_valid():
            raise GatewayError(f"Malformed {operation} response: {serializer.errors}")
        return serializer.validated_data

    def _to_reservation(self, booking, operation: str) -> Reservation:
        if not isinstance(booking, dict):
            raise GatewayError(f"Missing booking in {operation} response")
        validated = self._validate(BookingSerializer, booking, operation)
        total = validated.get("totalPrice")
        return Reservation(
            id=validated["_id"],
            status=ReservationStatus(validated["status"]),
            total_price=Money(total, self.currency) if total is not None else None,
            payment_status=validated["paymentStatus"],
            raw=booking,
        )
