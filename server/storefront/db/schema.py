"""SQLAlchemy table definitions for the storefront.

Uses SQLAlchemy Core (not ORM) so the same statements run on SQLite in
development/tests and PostgreSQL in production.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

# === Merch ===

merch_table = Table(
    "merch",
    metadata,
    Column("id", String(50), primary_key=True),
    Column("name", String(50), nullable=False),
    Column("size", String(50), nullable=False, default=""),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("quantity", Integer, nullable=False),
)

# === Events and artists ===

events_table = Table(
    "events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("headliner", JSON, nullable=False),
    Column("openers", JSON),
    Column("image_url", String(255), nullable=False, default=""),
    Column("location_name", String(100), nullable=False, default=""),
    Column("location_url", String(255), nullable=False, default=""),
    Column("ticket_url", String(255)),
    Column("start_time", DateTime(timezone=True)),
    Column("end_time", DateTime(timezone=True)),
)

artists_table = Table(
    "artists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False),
    Column("url", String(255)),
)

featured_artists_table = Table(
    "featured_artists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("artist", JSON, nullable=False),
    Column("soundcloud_iframe_url", String(255), nullable=False, default=""),
    Column("sequence", Integer, nullable=False, default=0),
)

# === Admin credentials ===

auth_table = Table(
    "auth",
    metadata,
    Column("username", String(64), primary_key=True),
    Column("password", Text, nullable=False),  # bcrypt hash
)
