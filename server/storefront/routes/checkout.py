# Stripe-hosted checkout and the completion webhook.
# POST /checkout → 200 {url} or 202 {product} when the cart over-orders.
# POST /webhook  → signature-verified; completed sessions reduce stock.

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse

from storefront.config import Settings
from storefront.dependencies import get_checkout_service, get_settings_dep
from storefront.exceptions import PayloadTooLargeError
from storefront.ratelimit import RL10, RL50, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import CheckoutRequest, CheckoutResponse
from storefront.services.checkout import CheckoutService

logger = structlog.get_logger(__name__)

router = APIRouter(route_class=GuardedRoute)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    dependencies=[Depends(RateLimit(RL10))],
    responses={202: {"model": CheckoutResponse, "description": "A cart item is out of stock"}},
)
async def checkout(
    body: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> Any:
    result = await service.checkout(body.items)
    if result.product is not None:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=result.model_dump(mode="json"),
        )
    return result


async def read_capped_body(request: Request, limit: int) -> bytes:
    """Read the request body, failing fast once it exceeds `limit` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
    return bytes(body)


@router.post("/webhook", dependencies=[Depends(RateLimit(RL50))])
async def webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    service: CheckoutService = Depends(get_checkout_service),
    settings: Settings = Depends(get_settings_dep),
) -> dict[str, Any]:
    payload = await read_capped_body(request, settings.webhook_max_body_bytes)
    updated = await service.handle_webhook(payload, stripe_signature)
    return {"received": True, "inventory_updates": updated}
