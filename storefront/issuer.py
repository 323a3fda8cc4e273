from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from .errors import InternalError, InvalidRequest, NotFound, StorefrontError
from .log import get_logger
from .models import BuyerInfo, CreateIntentResponse, Product

logger = get_logger("intent_issuer")


def amount_in_cents(price: Decimal) -> int:
    return int((Decimal(price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_metadata(product: Product, buyer: BuyerInfo) -> Dict[str, str]:
    return {
        "product_id": product.id,
        "product_name": product.name,
        "buyer_email": buyer.email,
        "buyer_name": buyer.full_name,
        "buyer_address": buyer.street_address,
        "buyer_city": buyer.city,
        "buyer_state": buyer.state,
        "buyer_zip_code": buyer.zip_code,
    }


class IntentIssuer:
    """
    Turns a purchase request into a processor payment intent.

    The price always comes from the catalog; nothing is written locally.
    Each call mints a new intent unless the caller supplies an idempotency key.
    """

    def __init__(self, catalog, processor, currency: str = "brl", minimum_amount: int = 50):
        self.catalog = catalog
        self.processor = processor
        self.currency = currency
        self.minimum_amount = minimum_amount

    def create_intent(
        self,
        product_id: Optional[str],
        buyer_info: Optional[BuyerInfo],
        idempotency_key: Optional[str] = None,
    ) -> CreateIntentResponse:
        if not product_id or buyer_info is None:
            raise InvalidRequest("Product ID and buyer info are required")

        product = self.catalog.get_active_product(product_id)
        if product is None:
            logger.info("intent_product_not_found", product_id=product_id)
            raise NotFound("Product not found", product_id=product_id)

        amount = amount_in_cents(product.price)
        if amount < self.minimum_amount:
            logger.info("intent_amount_too_small", product_id=product_id, amount=amount)
            raise InvalidRequest(
                "Amount too small",
                product_id=product_id,
                amount=amount,
                minimum=self.minimum_amount,
            )

        try:
            intent_id, client_secret = self.processor.create_intent(
                amount,
                self.currency,
                build_metadata(product, buyer_info),
                idempotency_key=idempotency_key,
            )
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("intent_create_failed", product_id=product_id)
            raise InternalError(error=str(e)) from e

        logger.info(
            "intent_created",
            product_id=product_id,
            intent_id=intent_id,
            amount=amount,
            currency=self.currency,
        )
        return CreateIntentResponse(client_secret=client_secret, payment_intent_id=intent_id)
