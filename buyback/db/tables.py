"""
SQLAlchemy Table definitions for the buyback database.

Uses SQLAlchemy Core (not ORM) for flexibility with Pydantic models.
Document payloads use JSONB on PostgreSQL and plain JSON elsewhere.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

Document = JSON().with_variant(JSONB(), "postgresql")

# =============================================================================
# TABLE: orders (primary record)
# =============================================================================

orders = Table(
    "orders",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("customer_id", String(128), index=True),
    Column("status", String(64), nullable=False),
    Column("data", Document, nullable=False, default={}),
    Column("version", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: customer_orders (per-customer mirror)
# =============================================================================

customer_orders = Table(
    "customer_orders",
    metadata,
    Column("customer_id", String(128), nullable=False),
    Column("order_id", String(64), nullable=False),
    Column("data", Document, nullable=False, default={}),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("customer_id", "order_id"),
)

# =============================================================================
# TABLE: order_activity (append-only log)
# =============================================================================

order_activity = Table(
    "order_activity",
    metadata,
    # Insertion order
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False, unique=True),
    Column(
        "order_id",
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("type", String(50), nullable=False, default="update"),
    Column("message", Text, nullable=False, default=""),
    Column("metadata", Document),
    Column("at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: counters
# =============================================================================

counters = Table(
    "counters",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("value", Integer, nullable=False),
    Column("version", Integer, nullable=False, default=0),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: promo_codes
# =============================================================================

promo_codes = Table(
    "promo_codes",
    metadata,
    Column("code", String(64), primary_key=True),
    Column("uses_left", Integer, nullable=False, default=0),
    Column("max_uses", Integer),
    Column("bonus_amount", Numeric(10, 2)),
    Column("requires_email_label", Boolean, nullable=False, default=False),
    Column("description", Text, default=""),
    Column("last_redeemed_at", DateTime(timezone=True)),
    Column("version", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: promo_redemptions
# =============================================================================

promo_redemptions = Table(
    "promo_redemptions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "code",
        String(64),
        ForeignKey("promo_codes.code", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("order_id", String(64), nullable=False),
    Column("bonus_amount", Numeric(10, 2), nullable=False),
    Column("shipping_preference", String(64)),
    Column("customer_name", String(255)),
    Column("customer_email", String(255)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("code", "order_id", name="uq_promo_redemption_order"),
)

# =============================================================================
# TABLE: print_jobs
# =============================================================================

print_jobs = Table(
    "print_jobs",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("sequence", Integer, nullable=False, unique=True),
    Column("folder", String(255), nullable=False),
    Column("order_ids", Document, nullable=False, default=[]),
    Column("created_at", DateTime(timezone=True), nullable=False),
)
