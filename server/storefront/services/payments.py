# Stripe gateway: hosted checkout sessions, line-item lookup, webhook
# verification, product images. The SDK is synchronous; callers on the
# event loop go through the default executor.

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

import stripe
import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]

from storefront.exceptions import PaymentProviderError, WebhookSignatureError
from storefront.schemas import Product

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def line_item(product: Product, currency: str = "usd") -> dict[str, Any]:
    """Stripe line item for `product.quantity` units at `product.price`."""
    product_data: dict[str, Any] = {
        "name": f"{product.name} {product.size}".strip(),
        "description": product.id,
        "metadata": {"product_id": product.id},
    }
    if product.image_url:
        product_data["images"] = [product.image_url]
    return {
        "price_data": {
            "currency": currency,
            "unit_amount": int(round(product.price * 100)),
            "product_data": product_data,
        },
        "quantity": product.quantity,
    }


class StripeGateway:
    """Per-call api_key, so tests and multiple apps never share global SDK state."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str = "",
        image_cache_ttl: float = 300,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._images: TTLCache[str, str | None] = TTLCache(maxsize=512, ttl=image_cache_ttl)
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def create_checkout_session(
        self, line_items: list[dict[str, Any]], success_url: str, cancel_url: str
    ) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=line_items,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("stripe_session_failed", error=str(e))
            raise PaymentProviderError(type(e).__name__) from e
        logger.info("stripe_session_created", session_id=session.id, items=len(line_items))
        return CheckoutSession(id=session.id, url=session.url)

    def list_line_items(self, session_id: str) -> list[tuple[str, int]]:
        """(product_id, quantity) for every line item of a completed session."""
        try:
            page = stripe.checkout.Session.list_line_items(
                session_id,
                api_key=self._api_key,
                limit=100,
                expand=["data.price.product"],
            )
            items = list(page.auto_paging_iter())
        except stripe.StripeError as e:
            logger.error("stripe_line_items_failed", session_id=session_id, error=str(e))
            raise PaymentProviderError(type(e).__name__) from e

        result = []
        for item in items:
            try:
                product_id = item["price"]["product"]["metadata"]["product_id"]
            except (KeyError, TypeError):
                logger.warning("line_item_without_product_id", session_id=session_id)
                continue
            result.append((product_id, int(item["quantity"])))
        return result

    def construct_event(self, payload: bytes, signature: str) -> Any:
        """Verify the Stripe-Signature header and parse the event."""
        if not self._webhook_secret:
            raise WebhookSignatureError("no webhook secret configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError("bad signature") from e
        except ValueError as e:
            raise WebhookSignatureError("malformed payload") from e

    def product_image(self, product_id: str) -> str | None:
        """First image of the matching Stripe product. Best effort, cached."""
        with self._lock:
            if product_id in self._images:
                return self._images[product_id]  # type: ignore[no-any-return]
        if not self._api_key:
            return None

        try:
            product = stripe.Product.retrieve(product_id, api_key=self._api_key)
            images = product["images"] or []
            url = images[0] if images else None
        except stripe.InvalidRequestError:
            url = None
        except stripe.StripeError as e:
            logger.warning("stripe_image_lookup_failed", product_id=product_id, error=str(e))
            return None

        with self._lock:
            self._images[product_id] = url
        return url
