# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from storefront.auth import SessionStore
from storefront.config import Settings
from storefront.db.store import Store
from storefront.ratelimit.registry import LimiterRegistry
from storefront.services.checkout import CheckoutService
from storefront.services.email import Mailer
from storefront.services.images import ImageStore
from storefront.services.metrics import ServerMetrics
from storefront.services.payments import StripeGateway


def get_store(request: Request) -> Store:
    return request.app.state.store  # type: ignore[no-any-return]


def get_limiter(request: Request) -> LimiterRegistry:
    return request.app.state.limiter  # type: ignore[no-any-return]


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions  # type: ignore[no-any-return]


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]


def get_metrics(request: Request) -> ServerMetrics:
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway  # type: ignore[no-any-return]


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout  # type: ignore[no-any-return]


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.images  # type: ignore[no-any-return]


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer  # type: ignore[no-any-return]
