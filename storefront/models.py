from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

ProductStatus = Literal["active", "inactive"]
PaymentStatus = Literal["pending", "paid", "failed"]

# major-unit amounts go out as JSON numbers, not strings
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# processor metadata values are capped at 500 characters
METADATA_VALUE_MAX = 500


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Product(WireModel):
    id: str
    owner_id: str = Field(alias="ownerId")
    name: str
    description: Optional[str] = None
    price: Money
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    status: ProductStatus = "active"
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class BuyerInfo(WireModel):
    full_name: str = Field(alias="fullName", min_length=1, max_length=METADATA_VALUE_MAX)
    email: str = Field(min_length=1, max_length=METADATA_VALUE_MAX)
    street_address: str = Field(default="", alias="streetAddress", max_length=METADATA_VALUE_MAX)
    city: str = Field(default="", max_length=METADATA_VALUE_MAX)
    state: str = Field(default="", max_length=METADATA_VALUE_MAX)
    zip_code: str = Field(default="", alias="zipCode", max_length=METADATA_VALUE_MAX)


class CreateIntentRequest(WireModel):
    # any client-supplied price is ignored; extra fields are dropped
    product_id: str = Field(alias="productId", min_length=1)
    buyer_info: BuyerInfo = Field(alias="buyerInfo")


class CreateIntentResponse(WireModel):
    client_secret: str = Field(alias="clientSecret")
    payment_intent_id: str = Field(alias="paymentIntentId")


class WebhookAck(BaseModel):
    received: bool = True


class ConfigResponse(WireModel):
    publishable_key: str = Field(alias="publishableKey")


class NewOrder(BaseModel):
    product_id: str
    seller_id: str
    customer_name: str
    customer_email: str
    customer_address: Optional[str] = None
    quantity: int = 1
    total_amount: Decimal
    payment_status: PaymentStatus = "paid"
    payment_provider: str
    payment_reference: str


class Order(WireModel):
    id: str
    product_id: str = Field(alias="productId")
    seller_id: str = Field(alias="sellerId")
    customer_name: str = Field(alias="customerName")
    customer_email: str = Field(alias="customerEmail")
    customer_address: Optional[str] = Field(default=None, alias="customerAddress")
    quantity: int
    total_amount: Money = Field(alias="totalAmount")
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    payment_provider: Optional[str] = Field(default=None, alias="paymentProvider")
    payment_reference: Optional[str] = Field(default=None, alias="paymentReference")
    created_at: datetime = Field(alias="createdAt")
    product_name: Optional[str] = Field(default=None, alias="productName")
    product_image_url: Optional[str] = Field(default=None, alias="productImageUrl")


class OrderStatusUpdate(WireModel):
    payment_status: PaymentStatus = Field(alias="paymentStatus")


class EventData(BaseModel):
    object: Dict[str, Any]


class ProcessorEvent(BaseModel):
    id: str
    type: str
    data: EventData


class SucceededIntent(BaseModel):
    id: str
    amount: int
    currency: Optional[str] = None
    status: Optional[str] = None
    metadata: Dict[str, str] = {}
