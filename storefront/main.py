from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .errors import ConfigurationError, InternalError, NotFound, StorefrontError, Unauthorized
from .issuer import IntentIssuer
from .log import configure_logging, get_logger
from .models import (
    ConfigResponse,
    CreateIntentRequest,
    CreateIntentResponse,
    Order,
    OrderStatusUpdate,
    Product,
    WebhookAck,
)
from .processor import StripeProcessor
from .reconciler import SettlementReconciler
from .settings import Settings, load_settings
from .store import PostgresStore

logger = get_logger("api")


def create_app(settings: Optional[Settings] = None, store=None, processor=None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_json)

    store = store or PostgresStore(settings.database_url)
    processor = processor or StripeProcessor(settings.stripe_secret_key)

    app = FastAPI(title="Storefront Payments", version="0.1.0")
    app.state.settings = settings
    app.state.store = store
    app.state.issuer = IntentIssuer(
        store,
        processor,
        currency=settings.payment_currency,
        minimum_amount=settings.minimum_charge_cents,
    )
    app.state.reconciler = SettlementReconciler(
        store,
        store,
        processor,
        settings.stripe_webhook_secret,
        tolerance=settings.webhook_tolerance_seconds,
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        log = logger.bind(path=request.url.path, kind=exc.kind, status=exc.status_code, **exc.context)
        if exc.status_code >= 500:
            log.error("request_failed", message=exc.message)
        else:
            log.warning("request_rejected", message=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            "{}: {}".format(".".join(str(p) for p in err["loc"][1:]) or "body", err["msg"])
            for err in exc.errors()
        )
        logger.warning("request_invalid", path=request.url.path, problems=problems)
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})

    _register_routes(app)
    return app


def get_store(request: Request):
    return request.app.state.store


def get_issuer(request: Request) -> IntentIssuer:
    return request.app.state.issuer


def get_reconciler(request: Request) -> SettlementReconciler:
    return request.app.state.reconciler


def current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    # set by the upstream auth proxy
    if not x_user_id:
        raise Unauthorized()
    return x_user_id


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/api/config", response_model=ConfigResponse)
    def public_config(request: Request):
        key = request.app.state.settings.stripe_publishable_key
        if not key:
            raise ConfigurationError("Payment configuration error. Please contact support.")
        return ConfigResponse(publishable_key=key)

    @app.post("/api/create-payment-intent", response_model=CreateIntentResponse)
    def create_payment_intent(
        req: CreateIntentRequest,
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
        issuer: IntentIssuer = Depends(get_issuer),
    ):
        try:
            return issuer.create_intent(req.product_id, req.buyer_info, idempotency_key=idempotency_key)
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("create_payment_intent_error", product_id=req.product_id)
            raise InternalError(error=str(e)) from e

    @app.post("/api/webhooks/stripe", response_model=WebhookAck)
    async def stripe_webhook(
        request: Request,
        stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
        reconciler: SettlementReconciler = Depends(get_reconciler),
    ):
        body = await request.body()
        try:
            return await run_in_threadpool(reconciler.handle_event, body, stripe_signature)
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("webhook_error")
            raise InternalError(f"Internal server error: {e}") from e

    @app.get("/api/products", response_model=List[Product])
    def list_products(store=Depends(get_store)):
        return store.list_active_products()

    @app.get("/api/products/{product_id}", response_model=Product)
    def get_product(product_id: str, store=Depends(get_store)):
        product = store.get_active_product(product_id)
        if product is None:
            raise NotFound("Product not found", product_id=product_id)
        return product

    @app.get("/api/seller/orders", response_model=List[Order])
    def list_seller_orders(user_id: str = Depends(current_user_id), store=Depends(get_store)):
        return store.list_seller_orders(user_id)

    @app.get("/api/seller/orders/{order_id}", response_model=Order)
    def get_seller_order(order_id: str, user_id: str = Depends(current_user_id), store=Depends(get_store)):
        order = store.get_seller_order(user_id, order_id)
        if order is None:
            raise NotFound("Order not found", order_id=order_id)
        return order

    @app.patch("/api/seller/orders/{order_id}", response_model=Order)
    def update_seller_order(
        order_id: str,
        update: OrderStatusUpdate,
        user_id: str = Depends(current_user_id),
        store=Depends(get_store),
    ):
        if not store.update_order_status(user_id, order_id, update.payment_status):
            raise NotFound("Order not found", order_id=order_id)
        logger.info("order_status_updated", order_id=order_id, seller_id=user_id, status=update.payment_status)
        return store.get_seller_order(user_id, order_id)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
