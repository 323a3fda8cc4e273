from decimal import Decimal
from typing import Dict, Optional

from pydantic import ValidationError

from .errors import ConfigurationError, InvalidRequest, InvalidSignature, NotFound
from .log import get_logger
from .models import NewOrder, SucceededIntent, WebhookAck

SUCCEEDED_EVENT = "payment_intent.succeeded"

logger = get_logger("settlement_reconciler")


def format_address(metadata: Dict[str, str]) -> Optional[str]:
    parts = [
        metadata.get("buyer_address", ""),
        metadata.get("buyer_city", ""),
        metadata.get("buyer_state", ""),
        metadata.get("buyer_zip_code", ""),
    ]
    address = ", ".join(p.strip() for p in parts if p and p.strip())
    return address or None


class SettlementReconciler:
    """
    Turns verified processor events into order rows.

    Every failure raises so the processor redelivers; a redelivered charge
    that is already recorded is acknowledged without writing again.
    """

    def __init__(self, catalog, orders, processor, webhook_secret: Optional[str], tolerance: int = 300):
        self.catalog = catalog
        self.orders = orders
        self.processor = processor
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def handle_event(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        if not self.webhook_secret or not signature:
            logger.error(
                "webhook_config_error",
                secret_present=bool(self.webhook_secret),
                signature_present=bool(signature),
            )
            raise ConfigurationError()

        try:
            event = self.processor.construct_event(raw_body, signature, self.webhook_secret, self.tolerance)
        except InvalidSignature as e:
            logger.warning("webhook_signature_invalid", error=e.context.get("error"))
            raise

        log = logger.bind(event_id=event.id, event_type=event.type)
        log.info("webhook_received")

        if event.type != SUCCEEDED_EVENT:
            return WebhookAck()

        try:
            intent = SucceededIntent.model_validate(event.data.object)
        except ValidationError as e:
            log.error("webhook_payload_invalid", error=str(e))
            raise InvalidRequest("Invalid payment intent payload") from e

        self.settle(intent, log)
        return WebhookAck()

    def settle(self, intent: SucceededIntent, log=logger) -> Optional[str]:
        log = log.bind(intent_id=intent.id)
        metadata = intent.metadata

        product_id = metadata.get("product_id")
        if not product_id:
            log.error("settlement_missing_product_id")
            raise InvalidRequest("Missing product id in payment metadata", intent_id=intent.id)

        product = self.catalog.get_product(product_id)
        if product is None:
            # deleted between intent creation and settlement; needs manual reconciliation
            log.error("settlement_product_not_found", product_id=product_id)
            raise NotFound("Product not found", product_id=product_id, intent_id=intent.id)

        order = NewOrder(
            product_id=product_id,
            seller_id=product.owner_id,
            customer_name=metadata.get("buyer_name", ""),
            customer_email=metadata.get("buyer_email", ""),
            customer_address=format_address(metadata),
            quantity=1,
            total_amount=Decimal(intent.amount) / 100,
            payment_status="paid",
            payment_provider=self.processor.name,
            payment_reference=intent.id,
        )

        order_id = self.orders.insert_order(order)
        if order_id is None:
            log.info("order_duplicate_ignored", product_id=product_id)
            return None

        log.info("order_created", order_id=order_id, product_id=product_id, seller_id=product.owner_id)
        return order_id
