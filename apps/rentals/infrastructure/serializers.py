"""Serializers validating booking API responses."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.rentals.domain.entities import ReservationStatus

PAYMENT_STATUSES = ('pending', 'paid', 'refunded', 'failed')


class EnvelopeSerializer(serializers.Serializer):
    """Every booking API response: {"success": ..., "message": ..., "data": {...}}"""

    success = serializers.BooleanField()
    message = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    data = serializers.DictField(default=dict)


class AvailabilitySerializer(serializers.Serializer):
    available = serializers.BooleanField()
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BookingSerializer(serializers.Serializer):
    """Reservation record; unknown fields (car, extras, pricing...) are ignored."""

    _id = serializers.CharField()
    status = serializers.ChoiceField(
        choices=[status.value for status in ReservationStatus],
        default=ReservationStatus.PENDING.value,
    )
    totalPrice = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )
    paymentStatus = serializers.ChoiceField(choices=PAYMENT_STATUSES, default='pending')


class PaymentIntentSerializer(serializers.Serializer):
    clientSecret = serializers.CharField()
    paymentIntentId = serializers.CharField(required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )

    def validate_clientSecret(self, value: str) -> str:  # noqa: N802
        if '_secret_' not in value:
            raise serializers.ValidationError("Not a payment intent client secret.")
        return value


class ExtraSerializer(serializers.Serializer):
    _id = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    pricePerDay = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    category = serializers.CharField(required=False, default='other')
    available = serializers.BooleanField(default=True)


class PaymentStatusSerializer(serializers.Serializer):
    bookingId = serializers.CharField()
    paymentStatus = serializers.ChoiceField(choices=PAYMENT_STATUSES, default='pending')
    stripeStatus = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )
