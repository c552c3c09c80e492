"""
Stripe payment processor

Confirms a PaymentIntent from the client side: the backend created the
intent and handed out its client secret, the card details arrive as an
opaque payment method id, and confirmation is authorised with the
publishable key plus that secret.
"""

import logging

import stripe
from django.conf import settings

from apps.rentals.domain.entities import CLIENT_SECRET_SEPARATOR, PaymentResult
from apps.rentals.domain.exceptions import GatewayError, PaymentDeclinedError
from apps.rentals.domain.ports import PaymentProcessor

logger = logging.getLogger(__name__)


def intent_id_from_client_secret(client_secret: str) -> str:
    """pi_123_secret_abc -> pi_123"""
    intent_id, separator, _ = client_secret.partition(CLIENT_SECRET_SEPARATOR)
    if not separator or not intent_id:
        raise ValueError("Malformed payment intent client secret")
    return intent_id


class StripePaymentProcessor(PaymentProcessor):

    def __init__(self, publishable_key: str):
        self.publishable_key = publishable_key

    @classmethod
    def from_settings(cls) -> 'StripePaymentProcessor':
        return cls(publishable_key=settings.STRIPE_PUBLISHABLE_KEY)

    def confirm_card_payment(self, client_secret: str, payment_method: str) -> PaymentResult:
        try:
            intent_id = intent_id_from_client_secret(client_secret)
        except ValueError as e:
            raise GatewayError(str(e)) from e

        logger.info(f"Confirming Stripe payment intent {intent_id}")

        try:
            intent = stripe.PaymentIntent.confirm(
                intent_id,
                client_secret=client_secret,
                payment_method=payment_method,
                api_key=self.publishable_key,
            )
        except stripe.CardError as e:
            logger.warning(f"Card declined for {intent_id}: {e.user_message} ({e.code})")
            raise PaymentDeclinedError(
                e.user_message or "Your card was declined",
                decline_code=e.code,
            ) from e
        except stripe.APIConnectionError as e:
            logger.error(f"Could not reach Stripe for {intent_id}: {e}")
            raise GatewayError(f"Could not reach payment processor: {e}", timed_out=True) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe error for {intent_id}: {e}")
            raise GatewayError(f"Payment processor error: {e}", status_code=e.http_status) from e

        logger.info(f"Stripe payment intent {intent.id} status: {intent.status}")
        return PaymentResult(status=intent.status, payment_reference=intent.id)
