# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Merch ────────────────────────────────────────────────────────────────────


class Product(BaseModel):
    """A sellable merch item. One row per id+size combination."""

    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=50)
    size: str = Field("", max_length=50)
    price: float = Field(..., ge=0, description="Unit price in dollars")
    quantity: int = Field(..., ge=0, description="Units in stock")
    image_url: str | None = None

    @field_validator("price")
    @classmethod
    def two_decimal_places(cls, v: float) -> float:
        return round(v, 2)


class ProductUpdate(BaseModel):
    """PATCH body; omitted or null fields keep their stored value."""

    name: str | None = Field(None, min_length=1, max_length=50)
    size: str | None = Field(None, max_length=50)
    price: float | None = Field(None, ge=0)
    quantity: int | None = Field(None, ge=0)


# ── Artists / events ─────────────────────────────────────────────────────────


class Artist(BaseModel):
    id: int | None = None
    name: str = Field(..., min_length=1, max_length=50)
    url: str = ""


class ArtistUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    url: str | None = None


class BilledArtist(BaseModel):
    """Artist as printed on an event bill (headliner or opener)."""

    name: str = Field(..., min_length=1)
    url: str = ""
    sequence: int = 0


class Event(BaseModel):
    id: int | None = None
    headliner: BilledArtist
    openers: list[BilledArtist] = Field(default_factory=list)
    image_url: str = ""
    location_name: str = ""
    location_url: str = ""
    ticket_url: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None


class EventUpdate(BaseModel):
    headliner: BilledArtist | None = None
    openers: list[BilledArtist] | None = None
    image_url: str | None = None
    location_name: str | None = None
    location_url: str | None = None
    ticket_url: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class FeaturedArtist(BaseModel):
    id: int | None = None
    artist: Artist
    soundcloud_iframe_url: str = ""
    sequence: int = 0


class FeaturedArtistUpdate(BaseModel):
    artist: Artist | None = None
    soundcloud_iframe_url: str | None = None
    sequence: int | None = None


# ── Checkout ─────────────────────────────────────────────────────────────────


class CartItem(BaseModel):
    id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=100)


class CheckoutRequest(BaseModel):
    items: list[CartItem] = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    """Either a redirect url, or the first product the cart over-orders."""

    url: str | None = None
    product: Product | None = None


# ── Auth / email / images ────────────────────────────────────────────────────


class SessionToken(BaseModel):
    token: str


class EmailRequest(BaseModel):
    """Booking inquiry from the contact form."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    sender: str = Field(..., alias="from", pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    body: str = Field(..., min_length=1, max_length=5000)


class ImageUploadResponse(BaseModel):
    key: str
    object_name: str
    url: str


# ── Health ───────────────────────────────────────────────────────────────────


class LivenessResponse(BaseModel):
    """Liveness probe — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness probe — can the instance serve traffic?"""

    status: str  # "ready" or "not_ready"
    database_connected: bool
    storage_connected: bool
    limiter_sweeping: bool
