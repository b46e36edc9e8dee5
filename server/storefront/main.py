# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn storefront.main:create_app --factory --host 0.0.0.0 --port 5001

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.auth import SessionStore
from storefront.config import get_settings
from storefront.db.store import Store
from storefront.exceptions import register_exception_handlers
from storefront.logging_config import configure_logging
from storefront.middleware import RequestContextMiddleware
from storefront.ratelimit import LimiterRegistry
from storefront.routes import artists, auth, checkout, email, events, health, images, products
from storefront.routes import prometheus as prometheus_routes
from storefront.services.checkout import CheckoutService
from storefront.services.email import Mailer
from storefront.services.images import ImageStore
from storefront.services.metrics import ServerMetrics
from storefront.services.payments import StripeGateway

logger = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider


def _configure_otel(exporter_type: str) -> "TracerProvider | None":
    """Configure OpenTelemetry tracing (console or gcp)."""
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider()

    if exporter_type == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    elif exporter_type == "gcp":
        try:
            from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter

            provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))  # type: ignore[no-untyped-call]
        except ImportError:
            logger.warning("gcp_trace_exporter_not_available")
            return None
    else:
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return None

    from opentelemetry import trace

    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared services on startup; stop the sweep and release I/O on shutdown."""
    settings = get_settings()

    otel_provider = None
    if settings.otel_exporter:
        otel_provider = _configure_otel(settings.otel_exporter)

    store = Store(settings.database_url)
    limiter = LimiterRegistry(
        period=settings.rate_limit_period_seconds,
        idle_timeout=settings.rate_limit_idle_seconds,
        sweep_interval=settings.rate_limit_sweep_interval_seconds,
    )
    metrics = ServerMetrics()
    gateway = StripeGateway(
        api_key=settings.stripe_key.get_secret_value(),
        webhook_secret=settings.stripe_webhook_secret.get_secret_value(),
    )
    image_store = ImageStore(bucket_name=settings.image_bucket, max_bytes=settings.max_image_bytes)
    await image_store.connect()
    mailer = Mailer(settings)

    app.state.settings = settings
    app.state.store = store
    app.state.limiter = limiter
    app.state.metrics = metrics
    app.state.sessions = SessionStore(
        ttl_seconds=settings.session_ttl_seconds, maxsize=settings.session_max_tokens
    )
    app.state.gateway = gateway
    app.state.checkout = CheckoutService(store, gateway, settings, metrics=metrics)
    app.state.images = image_store
    app.state.mailer = mailer

    if not gateway.configured:
        logger.warning("stripe_disabled", reason="STRIPE_KEY env var not set")

    await limiter.start()
    logger.info("storefront_started", port=settings.port)

    yield

    await limiter.stop()

    # Flush OTel spans before shutdown
    if otel_provider is not None:
        otel_provider.shutdown()

    await mailer.close()
    await image_store.disconnect()
    store.close()
    logger.info("storefront_stopped")


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn storefront.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Storefront",
        description="Merch, events, and checkout API with per-client rate limiting",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware order (Starlette applies in reverse): CORS → RequestContext
    app.add_middleware(RequestContextMiddleware)

    origins = _parse_origins(settings.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Retry-After", "X-Request-ID"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(products.router, tags=["products"])
    app.include_router(events.router, tags=["events"])
    app.include_router(artists.router, tags=["artists"])
    app.include_router(checkout.router, tags=["checkout"])
    app.include_router(images.router, tags=["images"])
    app.include_router(email.router, tags=["email"])

    return app
