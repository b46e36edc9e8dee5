# Checkout orchestrator: stock check → Stripe session; webhook → inventory.
# Store and Stripe calls are blocking and run in the default executor.


import asyncio
from typing import Any

import structlog
from opentelemetry import trace

from storefront.config import Settings
from storefront.db.store import Store
from storefront.exceptions import NotFoundError, OutOfStockError
from storefront.schemas import CartItem, CheckoutResponse, Product
from storefront.services.metrics import ServerMetrics
from storefront.services.payments import StripeGateway, line_item

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

COMPLETED_EVENT = "checkout.session.completed"


class CheckoutService:
    """Turns a cart into a Stripe session and settles completed sessions."""

    def __init__(
        self,
        store: Store,
        gateway: StripeGateway,
        settings: Settings,
        metrics: ServerMetrics | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._settings = settings
        self._metrics = metrics

    async def checkout(self, items: list[CartItem]) -> CheckoutResponse:
        """Session url for the cart, or the first product it over-orders.

        Raises NotFoundError for an unknown product id.
        """
        with tracer.start_as_current_span("checkout") as span:
            span.set_attribute("items", len(items))
            loop = asyncio.get_running_loop()

            with tracer.start_as_current_span("stock_check"):
                try:
                    ordered = await loop.run_in_executor(None, self._reserve, items)
                except OutOfStockError as exc:
                    span.set_attribute("out_of_stock", True)
                    logger.info("checkout_out_of_stock", product_id=exc.product.id)
                    if self._metrics:
                        self._metrics.record_checkout(session_created=False)
                    return CheckoutResponse(product=exc.product)

            with tracer.start_as_current_span("stripe_session"):
                session = await loop.run_in_executor(None, self._create_session, ordered)

            span.set_attribute("session_id", session.id)
            if self._metrics:
                self._metrics.record_checkout(session_created=True)
            return CheckoutResponse(url=session.url)

    def _reserve(self, items: list[CartItem]) -> list[Product]:
        ordered = []
        for item in items:
            product = self._store.get_order(item.id, item.quantity)
            if product is None:
                raise NotFoundError("product", item.id)
            ordered.append(product)
        return ordered

    def _create_session(self, ordered: list[Product]) -> Any:
        line_items = []
        for product in ordered:
            image = self._gateway.product_image(product.id)
            priced = product.model_copy(update={"image_url": image})
            line_items.append(line_item(priced, self._settings.currency))
        url = self._settings.client_url
        return self._gateway.create_checkout_session(line_items, success_url=url, cancel_url=url)

    # ── Webhook ──────────────────────────────────────────────────────────

    async def handle_webhook(self, payload: bytes, signature: str) -> int:
        """Verify a Stripe event; on a completed session, decrement stock.

        Returns the number of products whose inventory was reduced.
        """
        event = self._gateway.construct_event(payload, signature)
        event_type = event["type"]
        if event_type != COMPLETED_EVENT:
            logger.info("webhook_ignored", event_type=event_type)
            return 0

        session_id = event["data"]["object"]["id"]
        with tracer.start_as_current_span("settle_session") as span:
            span.set_attribute("session_id", session_id)
            loop = asyncio.get_running_loop()
            updated = await loop.run_in_executor(None, self._settle, session_id)

        logger.info("webhook_settled", session_id=session_id, inventory_updates=updated)
        if self._metrics:
            self._metrics.record_webhook(updated)
        return updated

    def _settle(self, session_id: str) -> int:
        updated = 0
        for product_id, quantity in self._gateway.list_line_items(session_id):
            if self._store.decrement_quantity(product_id, quantity):
                updated += 1
        return updated
