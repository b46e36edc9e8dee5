# ─────────────────────────────────────────────────────────────────────────────
# Store — data access for merch, events, artists, and admin credentials
# ─────────────────────────────────────────────────────────────────────────────
# One round-trip per operation, no caching. Driver failures surface as
# DatabaseError (500); "no such row" is None / False for the caller to map.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Self, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import Connection, Table, create_engine, delete, event, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from storefront.db.schema import (
    artists_table,
    auth_table,
    events_table,
    featured_artists_table,
    merch_table,
    metadata,
)
from storefront.exceptions import ConflictError, DatabaseError, OutOfStockError
from storefront.schemas import (
    Artist,
    ArtistUpdate,
    Event,
    EventUpdate,
    FeaturedArtist,
    FeaturedArtistUpdate,
    Product,
    ProductUpdate,
)

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class Store:
    """Storefront database over a SQLAlchemy engine.

    SQLite (development, tests) and PostgreSQL (production) share the
    same Core statements. Stored in app.state, injected via Depends().
    """

    def __init__(self, url: str, *, create_tables: bool = True) -> None:
        self.url = url
        self._engine: Engine | None = self._make_engine(url)
        if create_tables:
            metadata.create_all(self.engine)

    @staticmethod
    def _make_engine(url: str) -> Engine:
        if not url.startswith("sqlite"):
            return create_engine(url, pool_pre_ping=True, pool_size=20, pool_recycle=300)

        # Request handlers run on a thread pool; one shared connection for :memory:
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    @classmethod
    def in_memory(cls) -> Self:
        """In-memory SQLite store with tables created. For tests."""
        return cls("sqlite:///:memory:")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Store is closed")
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, RuntimeError) as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        """Transaction scope translating driver errors into DatabaseError."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error("database_error", error=str(e))
            raise DatabaseError() from e

    # ── Products ─────────────────────────────────────────────────────────

    def list_products(self) -> list[Product]:
        with self._begin() as conn:
            rows = conn.execute(select(merch_table).order_by(merch_table.c.id)).mappings()
            return [Product.model_validate(dict(row)) for row in rows]

    def get_product(self, product_id: str) -> Product | None:
        with self._begin() as conn:
            row = (
                conn.execute(select(merch_table).where(merch_table.c.id == product_id))
                .mappings()
                .first()
            )
        return Product.model_validate(dict(row)) if row else None

    def create_product(self, product: Product) -> Product:
        try:
            with self._begin() as conn:
                conn.execute(
                    merch_table.insert().values(**product.model_dump(exclude={"image_url"}))
                )
        except IntegrityError as e:
            raise ConflictError("product", product.id) from e
        logger.info("product_created", product_id=product.id)
        return product

    def update_product(self, product_id: str, patch: ProductUpdate) -> Product | None:
        """Merge the set fields of `patch` over the stored row. Id is immutable."""
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        with self._begin() as conn:
            row = (
                conn.execute(select(merch_table).where(merch_table.c.id == product_id))
                .mappings()
                .first()
            )
            if row is None:
                return None
            merged = Product.model_validate({**dict(row), **changes, "id": product_id})
            if changes:
                conn.execute(
                    update(merch_table)
                    .where(merch_table.c.id == product_id)
                    .values(**merged.model_dump(exclude={"id", "image_url"}))
                )
        return merged

    def delete_product(self, product_id: str) -> bool:
        with self._begin() as conn:
            result = conn.execute(delete(merch_table).where(merch_table.c.id == product_id))
        return result.rowcount > 0

    def get_order(self, product_id: str, quantity: int) -> Product | None:
        """Product priced for `quantity` units, if that many are in stock.

        Returns None for an unknown id. Raises OutOfStockError carrying the
        product as stocked when fewer than `quantity` remain.
        """
        product = self.get_product(product_id)
        if product is None:
            return None
        if product.quantity < quantity:
            raise OutOfStockError(product)
        return product.model_copy(update={"quantity": quantity})

    def decrement_quantity(self, product_id: str, quantity: int) -> bool:
        """Reduce stock after a completed checkout. False if the id is unknown."""
        with self._begin() as conn:
            result = conn.execute(
                update(merch_table)
                .where(merch_table.c.id == product_id)
                .values(quantity=merch_table.c.quantity - quantity)
            )
        if result.rowcount == 0:
            logger.warning("inventory_update_unknown_product", product_id=product_id)
            return False
        logger.info("inventory_decremented", product_id=product_id, quantity=quantity)
        return True

    # ── Events ───────────────────────────────────────────────────────────

    def list_events(self) -> list[Event]:
        return [_event(row) for row in self._all(events_table)]

    def get_event(self, event_id: int) -> Event | None:
        row = self._one(events_table, event_id)
        return _event(row) if row else None

    def create_event(self, item: Event) -> Event:
        new_id = self._insert(events_table, _event_values(item))
        return item.model_copy(update={"id": new_id})

    def update_event(self, event_id: int, patch: EventUpdate) -> Event | None:
        current = self.get_event(event_id)
        if current is None:
            return None
        merged = _merge(Event, current, patch, event_id)
        self._update(events_table, event_id, _event_values(merged))
        return merged

    def delete_event(self, event_id: int) -> bool:
        return self._delete(events_table, event_id)

    # ── Artists ──────────────────────────────────────────────────────────

    def list_artists(self) -> list[Artist]:
        return [Artist.model_validate(row) for row in self._all(artists_table)]

    def get_artist(self, artist_id: int) -> Artist | None:
        row = self._one(artists_table, artist_id)
        return Artist.model_validate(row) if row else None

    def create_artist(self, artist: Artist) -> Artist:
        new_id = self._insert(artists_table, artist.model_dump(exclude={"id"}))
        return artist.model_copy(update={"id": new_id})

    def update_artist(self, artist_id: int, patch: ArtistUpdate) -> Artist | None:
        current = self.get_artist(artist_id)
        if current is None:
            return None
        merged = _merge(Artist, current, patch, artist_id)
        self._update(artists_table, artist_id, merged.model_dump(exclude={"id"}))
        return merged

    def delete_artist(self, artist_id: int) -> bool:
        return self._delete(artists_table, artist_id)

    # ── Featured artists ─────────────────────────────────────────────────

    def list_featured_artists(self) -> list[FeaturedArtist]:
        rows = self._all(featured_artists_table, order_by=featured_artists_table.c.sequence)
        return [FeaturedArtist.model_validate(row) for row in rows]

    def get_featured_artist(self, featured_id: int) -> FeaturedArtist | None:
        row = self._one(featured_artists_table, featured_id)
        return FeaturedArtist.model_validate(row) if row else None

    def create_featured_artist(self, featured: FeaturedArtist) -> FeaturedArtist:
        values = featured.model_dump(mode="json", exclude={"id"})
        new_id = self._insert(featured_artists_table, values)
        return featured.model_copy(update={"id": new_id})

    def update_featured_artist(
        self, featured_id: int, patch: FeaturedArtistUpdate
    ) -> FeaturedArtist | None:
        current = self.get_featured_artist(featured_id)
        if current is None:
            return None
        merged = _merge(FeaturedArtist, current, patch, featured_id)
        self._update(
            featured_artists_table, featured_id, merged.model_dump(mode="json", exclude={"id"})
        )
        return merged

    def delete_featured_artist(self, featured_id: int) -> bool:
        return self._delete(featured_artists_table, featured_id)

    # ── Admin credentials ────────────────────────────────────────────────

    def get_admin_password_hash(self, username: str) -> str | None:
        with self._begin() as conn:
            return conn.execute(
                select(auth_table.c.password).where(auth_table.c.username == username)
            ).scalar_one_or_none()

    def upsert_admin(self, username: str, password_hash: str) -> None:
        with self._begin() as conn:
            exists = conn.execute(
                select(auth_table.c.username).where(auth_table.c.username == username)
            ).first()
            if exists:
                conn.execute(
                    update(auth_table)
                    .where(auth_table.c.username == username)
                    .values(password=password_hash)
                )
            else:
                conn.execute(auth_table.insert().values(username=username, password=password_hash))
        logger.info("admin_upserted", username=username)

    # ── Integer-keyed table helpers ──────────────────────────────────────

    def _all(self, table: Table, order_by: Any = None) -> list[dict[str, Any]]:
        stmt = select(table).order_by(order_by if order_by is not None else table.c.id)
        with self._begin() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def _one(self, table: Table, row_id: int) -> dict[str, Any] | None:
        with self._begin() as conn:
            row = conn.execute(select(table).where(table.c.id == row_id)).mappings().first()
        return dict(row) if row else None

    def _insert(self, table: Table, values: dict[str, Any]) -> int:
        with self._begin() as conn:
            result = conn.execute(table.insert().values(**values))
            new_id = int(result.inserted_primary_key[0])
        logger.info("row_created", table=table.name, id=new_id)
        return new_id

    def _update(self, table: Table, row_id: int, values: dict[str, Any]) -> None:
        with self._begin() as conn:
            conn.execute(update(table).where(table.c.id == row_id).values(**values))

    def _delete(self, table: Table, row_id: int) -> bool:
        with self._begin() as conn:
            result = conn.execute(delete(table).where(table.c.id == row_id))
        deleted = result.rowcount > 0
        if deleted:
            logger.info("row_deleted", table=table.name, id=row_id)
        return deleted


def _merge(model: type[M], current: M, patch: BaseModel, row_id: int) -> M:
    """Overlay the non-null fields set on `patch`; the path id always wins."""
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    return model.model_validate({**current.model_dump(), **changes, "id": row_id})


def _event(row: dict[str, Any]) -> Event:
    return Event.model_validate({**row, "openers": row.get("openers") or []})


def _event_values(item: Event) -> dict[str, Any]:
    return {
        "headliner": item.headliner.model_dump(mode="json"),
        "openers": [opener.model_dump(mode="json") for opener in item.openers],
        "image_url": item.image_url,
        "location_name": item.location_name,
        "location_url": item.location_url,
        "ticket_url": item.ticket_url,
        "start_time": item.start_time,
        "end_time": item.end_time,
    }
