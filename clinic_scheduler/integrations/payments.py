"""Payment collaborator.

The lifecycle manager only talks to :class:`PaymentGateway`; Stripe is the
production implementation. Any provider problem surfaces as
:class:`PaymentProviderError` so callers can fail closed.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import stripe

from clinic_scheduler.core import config

logger = logging.getLogger(__name__)


class PaymentProviderError(Exception):
    pass


@dataclass(frozen=True)
class Charge:
    id: str
    client_secret: str | None = None


@dataclass(frozen=True)
class Refund:
    id: str


class PaymentGateway:
    def create_charge(self, amount: Decimal, metadata: dict) -> Charge:
        raise NotImplementedError

    def refund(self, charge_id: str, amount: Decimal) -> Refund:
        raise NotImplementedError

    def confirmed(self, payment_id: str) -> bool:
        raise NotImplementedError


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentGateway(PaymentGateway):
    def __init__(self, api_key: str, currency: str = "usd"):
        self.api_key = api_key
        self.currency = currency

    def _require_key(self) -> None:
        if not self.api_key:
            logger.warning("Stripe secret key not configured")
            raise PaymentProviderError("Payments are not currently available.")

    def create_charge(self, amount: Decimal, metadata: dict) -> Charge:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount),
                currency=self.currency,
                metadata={key: str(value) for key, value in metadata.items()},
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe API error while creating payment intent")
            raise PaymentProviderError("Failed to create payment intent.") from exc

        return Charge(id=intent.id, client_secret=intent.client_secret)

    def refund(self, charge_id: str, amount: Decimal) -> Refund:
        self._require_key()
        try:
            refund = stripe.Refund.create(
                payment_intent=charge_id,
                amount=to_cents(amount),
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe API error while refunding %s", charge_id)
            raise PaymentProviderError("Failed to refund payment.") from exc

        return Refund(id=refund.id)

    def confirmed(self, payment_id: str) -> bool:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe API error while retrieving payment intent %s", payment_id)
            raise PaymentProviderError("Failed to retrieve payment intent.") from exc

        return intent.status == "succeeded"


def get_payment_gateway() -> PaymentGateway:
    return StripePaymentGateway(config.STRIPE_SECRET_KEY, currency=config.CURRENCY)
