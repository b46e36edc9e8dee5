# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Infrastructure ───────────────────────────────────────────────────────
    # SQLAlchemy URL. sqlite:///:memory: for tests, postgresql+psycopg://... in prod.
    database_url: str = "sqlite:///./storefront.db"
    image_bucket: str = ""  # GCS bucket for product/event images; empty = uploads disabled
    port: int = 5001

    # ── Rate limiting ────────────────────────────────────────────────────────
    # Bucket refill window; route limits are requests per this period.
    rate_limit_period_seconds: float = 60.0
    # Buckets idle longer than this are evicted by the sweep.
    rate_limit_idle_seconds: float = 60.0
    rate_limit_sweep_interval_seconds: float = 60.0

    # ── Security ─────────────────────────────────────────────────────────────
    # SecretStr keeps credentials out of logs, repr(), and model_dump().
    # Static admin bearer token. Empty string = only session tokens from /signin.
    admin_bearer: SecretStr = SecretStr("")
    session_ttl_seconds: int = 3600
    session_max_tokens: int = 1024

    # Comma-separated origins for CORS (e.g. "https://shop.example.com").
    # Empty string = deny all cross-origin requests (secure default).
    allowed_origins: str = ""

    # ── Payments (Stripe) ────────────────────────────────────────────────────
    stripe_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")
    client_url: str = "http://localhost:3000"  # success/cancel redirect after checkout
    currency: str = "usd"
    webhook_max_body_bytes: int = 65536

    # ── Email (Mailjet) ──────────────────────────────────────────────────────
    mailjet_api_key: SecretStr = SecretStr("")
    mailjet_api_secret: SecretStr = SecretStr("")
    mailjet_url: str = "https://api.mailjet.com/v3.1/send"
    sender_email: str = ""  # verified Mailjet sender
    booking_email: str = ""  # merchant inbox receiving booking inquiries
    booking_name: str = "Booking"

    # ── Limits ───────────────────────────────────────────────────────────────
    max_image_bytes: int = 3_000_000

    # ── Logging / tracing ────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True
    otel_exporter: str = ""  # "console" | "gcp" | "" (disabled)


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
