import json
from typing import Dict, Optional, Tuple

import stripe
from pydantic import ValidationError

from .errors import InternalError, InvalidRequest, InvalidSignature
from .log import get_logger
from .models import ProcessorEvent

PROVIDER_NAME = "stripe"

logger = get_logger("processor")


class StripeProcessor:
    """Thin adapter over the Stripe SDK. The API key is passed per call, never set globally."""

    name = PROVIDER_NAME

    def __init__(self, secret_key: str):
        self._secret_key = secret_key

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Tuple[str, str]:
        params = {
            "api_key": self._secret_key,
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            logger.error("intent_create_failed", error=str(e), error_type=type(e).__name__)
            raise InternalError(error=str(e)) from e

        return intent.id, intent.client_secret

    def construct_event(
        self,
        payload: bytes,
        signature: str,
        secret: str,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ) -> ProcessorEvent:
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidSignature(error="body is not utf-8") from e

        # signature first; the body is not parsed until it is authenticated
        try:
            stripe.WebhookSignature.verify_header(payload, signature, secret, tolerance)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(error=str(e)) from e

        try:
            return ProcessorEvent.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as e:
            raise InvalidRequest("Invalid event payload", error=str(e)) from e
