"""Relational layout of the backing store.

Both adapters read this metadata: the SQL adapter creates the tables from it,
the in-memory adapter derives its unique constraints from it.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Engine,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("item", String(100), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("image", String(500)),
    Column("category", String(100), nullable=False, default="General"),
    Column("is_new", Boolean, nullable=False, default=False),
    Column("is_archived", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True)),
)

categories = Table(
    "categories",
    metadata,
    Column("name", String(100), primary_key=True),
)

settings = Table(
    "settings",
    metadata,
    Column("key", String(100), primary_key=True),
    Column("value", Text, nullable=False, default=""),
)

static_pages = Table(
    "static_pages",
    metadata,
    Column("slug", String(200), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=True),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item", String(100), nullable=False),
    Column("ref_code", String(32), nullable=False),
    Column("amount", Float, nullable=False),
    Column("status", String(50), nullable=False),
    Column("payment_method", String(50), nullable=False),
    Column("downloaded", Boolean, nullable=False, default=False),
    Column("receipt_ref", String(100)),
    Column("email", String(255)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
    UniqueConstraint("ref_code", "item", name="uq_orders_ref_code_item"),
)

custom_bot_orders = Table(
    "custom_bot_orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ref_code", String(32), nullable=False, unique=True),
    Column("tracking_number", String(32), nullable=False, unique=True),
    Column("client_email", String(255), nullable=False),
    Column("bot_description", Text, nullable=False),
    Column("bot_features", Text, nullable=False),
    Column("budget_amount", Float, nullable=False),
    Column("payment_method", String(20), nullable=False),
    Column("refund_method", String(20), nullable=False),
    Column("refund_mpesa_number", String(20)),
    Column("refund_mpesa_name", String(255)),
    Column("refund_crypto_wallet", String(255)),
    Column("refund_crypto_network", String(50)),
    Column("status", String(20), nullable=False, default="pending"),
    Column("payment_status", String(20), nullable=False, default="pending"),
    Column("payment_id", String(100)),
    Column("mpesa_receipt_number", String(100)),
    Column("refund_reason", String(50)),
    Column("custom_refund_message", Text),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
    Column("refunded_at", DateTime(timezone=True)),
)


def unique_keys(table: Table) -> list[tuple[str, ...]]:
    """Every column set that must be unique within ``table``."""
    keys = [tuple(column.name for column in table.primary_key.columns)]
    for column in table.columns:
        if column.unique:
            keys.append((column.name,))
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            keys.append(tuple(column.name for column in constraint.columns))
    return list(dict.fromkeys(keys))


def setup_db(engine: Engine) -> None:
    """Create every table."""
    metadata.create_all(engine)


def drop_db(engine: Engine) -> None:
    """Drop every table."""
    metadata.drop_all(engine)
