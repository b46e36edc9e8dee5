# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────
# The lifespan never runs here: fixtures build app.state by hand with an
# in-memory SQLite store, a fake-clock limiter, and a mocked Stripe gateway.
# ─────────────────────────────────────────────────────────────────────────────

import os
from collections.abc import Iterator
from unittest.mock import MagicMock

import bcrypt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import SecretStr

from storefront.auth import SessionStore
from storefront.config import Settings
from storefront.db.store import Store
from storefront.main import create_app
from storefront.ratelimit import LimiterRegistry
from storefront.schemas import Product
from storefront.services.checkout import CheckoutService
from storefront.services.email import Mailer
from storefront.services.images import ImageStore
from storefront.services.metrics import ServerMetrics
from storefront.services.payments import CheckoutSession, StripeGateway

ADMIN_BEARER = "static-admin-token"
ADMIN_USER = "admin"
ADMIN_PASSWORD = "correct horse battery staple"
SESSION_URL = "https://checkout.stripe.com/c/pay/cs_test_123"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing — SQLite in memory, no GCS, no Stripe."""
    return Settings(
        database_url="sqlite:///:memory:",
        image_bucket="",
        admin_bearer=SecretStr(ADMIN_BEARER),
        stripe_key=SecretStr("sk_test_dummy"),
        stripe_webhook_secret=SecretStr("whsec_dummy"),
        client_url="https://shop.example.com",
        mailjet_api_key=SecretStr("mj-key"),
        mailjet_api_secret=SecretStr("mj-secret"),
        sender_email="noreply@example.com",
        booking_email="booking@example.com",
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def store() -> Iterator[Store]:
    s = Store.in_memory()
    yield s
    s.close()


@pytest.fixture
def seeded_store(store: Store) -> Store:
    """Store with two shirts and an admin account."""
    store.create_product(Product(id="prod_tee_m", name="Tee", size="M", price=25.0, quantity=10))
    store.create_product(Product(id="prod_tee_l", name="Tee", size="L", price=25.0, quantity=1))
    # Cost factor 4 keeps bcrypt fast in tests
    hashed = bcrypt.hashpw(ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()
    store.upsert_admin(ADMIN_USER, hashed)
    return store


@pytest.fixture
def limiter(clock: FakeClock) -> LimiterRegistry:
    return LimiterRegistry(clock=clock)


@pytest.fixture
def mock_gateway() -> StripeGateway:
    """StripeGateway with every SDK-backed method mocked."""
    gateway = MagicMock(spec=StripeGateway)
    gateway.configured = True
    gateway.product_image.return_value = None
    gateway.create_checkout_session.return_value = CheckoutSession(
        id="cs_test_123", url=SESSION_URL
    )
    gateway.list_line_items.return_value = []
    return gateway


@pytest.fixture
def mock_bucket() -> MagicMock:
    return MagicMock(name="bucket")


@pytest.fixture
def image_store(mock_bucket: MagicMock) -> ImageStore:
    """ImageStore wired to a mocked GCS bucket."""
    images = ImageStore(bucket_name="test-bucket")
    images._bucket = mock_bucket
    return images


def install_state(
    app: FastAPI,
    settings: Settings,
    store: Store,
    limiter: LimiterRegistry,
    gateway: StripeGateway,
    images: ImageStore,
) -> None:
    """Populate app.state the way the lifespan does."""
    metrics = ServerMetrics()
    app.state.settings = settings
    app.state.store = store
    app.state.limiter = limiter
    app.state.metrics = metrics
    app.state.sessions = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    app.state.gateway = gateway
    app.state.checkout = CheckoutService(store, gateway, settings, metrics=metrics)
    app.state.images = images
    app.state.mailer = Mailer(settings)


@pytest.fixture
def app(
    test_settings: Settings,
    seeded_store: Store,
    limiter: LimiterRegistry,
    mock_gateway: StripeGateway,
    image_store: ImageStore,
) -> FastAPI:
    from storefront.config import get_settings

    get_settings.cache_clear()
    os.environ["LOG_JSON"] = "false"
    try:
        application = create_app()
    finally:
        os.environ.pop("LOG_JSON", None)
        get_settings.cache_clear()

    install_state(application, test_settings, seeded_store, limiter, mock_gateway, image_store)
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI TestClient over hand-built state. Peer is testclient:50000."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_BEARER}"}
