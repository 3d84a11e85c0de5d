#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Database management and persistence layer for the checkout engine.

This module provides the schema definitions, database session management, and
asynchronous data access helpers used by the server. It utilizes SQLAlchemy
with SQLite (via aiosqlite).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup.
- Immediate transactions: every transaction opens with `BEGIN IMMEDIATE` so
  that concurrent requests serialize on the write lock instead of failing
  with a stale read snapshot. WAL mode keeps readers outside transactions
  unblocked.
- Declarative Models: catalog state (shops, listings, variants), carts,
  orders with their embedded item snapshots, discounts and webhook deliveries.
- Data Access Helpers: asynchronous lookups plus the conditional stock
  updates, which are the only statements allowed to change inventory.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
import uuid

from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import delete
from sqlalchemy import event
from sqlalchemy import ForeignKey
from sqlalchemy import func
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import or_
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.orm import sessionmaker

from enums import ComplianceStatus
from enums import ListingStatus
from enums import ListingType
from enums import OrderStatus
from enums import PaymentStatus

logger = logging.getLogger(__name__)

Base = declarative_base()


def now_iso() -> str:
  return datetime.datetime.now(datetime.timezone.utc).isoformat()


def new_id() -> str:
  return str(uuid.uuid4())


def create_engine(db_path: str, **kwargs: Any) -> AsyncEngine:
  """Creates an aiosqlite engine with immediate write transactions.

  Args:
    db_path: Path of the SQLite database file.
    **kwargs: Extra keyword arguments for `create_async_engine` (e.g. a
      `poolclass` in tests).

  Returns:
    The configured async engine.
  """
  engine = create_async_engine(
      f"sqlite+aiosqlite:///{db_path}",
      echo=False,
      connect_args={"timeout": 30},
      **kwargs,
  )

  @event.listens_for(engine.sync_engine, "connect")
  def _on_connect(dbapi_connection, connection_record):
    del connection_record  # Unused.
    # Take BEGIN away from the driver so the "begin" hook below owns it.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()

  @event.listens_for(engine.sync_engine, "begin")
  def _on_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")

  return engine


class DatabaseManager:
  """Manages the database engine and sessions without using global variables."""

  def __init__(self) -> None:
    self.engine: Optional[AsyncEngine] = None
    self.session_factory: Optional[sessionmaker] = None

  async def init_db(self, db_path: str) -> None:
    """Initializes the database engine and creates tables."""
    self.engine = create_engine(db_path)
    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.engine.begin() as conn:
      await conn.run_sync(Base.metadata.create_all)

  async def close(self) -> None:
    """Closes the database engine."""
    if self.engine:
      await self.engine.dispose()


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


class Shop(Base):
  __tablename__ = "shops"

  id = Column(String, primary_key=True)
  owner_user_id = Column(String, index=True)
  name = Column(String)
  # Shop-wide defaults; listings may override them.
  return_policy_type = Column(String, nullable=True)
  return_window_days = Column(Integer, nullable=True)


class ProcessingProfile(Base):
  __tablename__ = "processing_profiles"

  id = Column(String, primary_key=True)
  shop_id = Column(String, ForeignKey("shops.id"))
  mode = Column(String)  # e.g., 'READY_TO_SHIP', 'MADE_TO_ORDER'
  min_days = Column(Integer)
  max_days = Column(Integer)


class ShippingProfile(Base):
  __tablename__ = "shipping_profiles"

  id = Column(String, primary_key=True)
  shop_id = Column(String, ForeignKey("shops.id"))
  # {"domestic": {"base_price_minor": .., "additional_item_price_minor": ..},
  #  "international": {...}}
  rules = Column(JSON)


class Listing(Base):
  __tablename__ = "listings"

  id = Column(String, primary_key=True)
  shop_id = Column(String, ForeignKey("shops.id"))
  seller_user_id = Column(String, index=True)
  slug = Column(String, unique=True)
  title = Column(String)
  listing_type = Column(String, default=ListingType.PHYSICAL.value)
  status = Column(String, default=ListingStatus.DRAFT.value)
  compliance_status = Column(String, default=ComplianceStatus.OK.value)
  is_private = Column(Boolean, default=False)
  private_access_user_ids = Column(JSON, nullable=True)
  base_price_minor = Column(Integer)  # Price in minor units
  base_quantity = Column(Integer, default=0)
  currency = Column(String, default="TRY")
  processing_profile_id = Column(
      String, ForeignKey("processing_profiles.id"), nullable=True
  )
  shipping_profile_id = Column(
      String, ForeignKey("shipping_profiles.id"), nullable=True
  )
  return_policy_type = Column(String, nullable=True)
  return_window_days = Column(Integer, nullable=True)
  updated_at = Column(String, default=now_iso)

  shop = relationship("Shop", lazy="selectin")
  processing_profile = relationship("ProcessingProfile", lazy="selectin")
  shipping_profile = relationship("ShippingProfile", lazy="selectin")
  variants = relationship("ListingVariant", lazy="selectin")
  personalization_fields = relationship(
      "PersonalizationField",
      lazy="selectin",
      order_by="PersonalizationField.position",
  )


class ListingVariant(Base):
  __tablename__ = "listing_variants"

  id = Column(String, primary_key=True)
  listing_id = Column(String, ForeignKey("listings.id"), index=True)
  is_active = Column(Boolean, default=True)
  # Ordered list of {"group": "Size", "value": "M"} pairs.
  selections = Column(JSON, default=list)
  # NULL means "inherit from the listing"; 0 is a real value.
  price_minor_override = Column(Integer, nullable=True)
  quantity_override = Column(Integer, nullable=True)


class PersonalizationField(Base):
  __tablename__ = "personalization_fields"

  id = Column(String, primary_key=True)
  listing_id = Column(String, ForeignKey("listings.id"), index=True)
  label = Column(String)
  is_required = Column(Boolean, default=False)
  min_length = Column(Integer, nullable=True)
  max_length = Column(Integer, nullable=True)
  position = Column(Integer, default=0)


class Cart(Base):
  __tablename__ = "carts"

  id = Column(String, primary_key=True)
  user_id = Column(String, unique=True)
  created_at = Column(String, default=now_iso)

  items = relationship(
      "CartItem",
      lazy="selectin",
      order_by="CartItem.created_at",
      cascade="all, delete-orphan",
  )


class CartItem(Base):
  __tablename__ = "cart_items"

  id = Column(String, primary_key=True)
  cart_id = Column(String, ForeignKey("carts.id"), index=True)
  listing_id = Column(String, ForeignKey("listings.id"))
  variant_id = Column(String, ForeignKey("listing_variants.id"), nullable=True)
  quantity = Column(Integer)
  personalization = Column(JSON(none_as_null=True), nullable=True)
  created_at = Column(String, default=now_iso)

  listing = relationship("Listing", lazy="selectin")
  variant = relationship("ListingVariant", lazy="selectin")


class Order(Base):
  __tablename__ = "orders"

  id = Column(String, primary_key=True)
  order_number = Column(String, unique=True, nullable=False)
  idempotency_key = Column(String, unique=True, index=True, nullable=False)
  buyer_user_id = Column(String, index=True)
  status = Column(String, default=OrderStatus.PENDING_PAYMENT.value)
  payment_status = Column(String, default=PaymentStatus.PENDING.value)
  # Totals are frozen at creation and never recomputed from the items.
  subtotal_minor = Column(Integer)
  shipping_total_minor = Column(Integer)
  discount_total_minor = Column(Integer)
  grand_total_minor = Column(Integer)
  currency = Column(String)
  shipping_address = Column(JSON)
  discount_codes = Column(JSON, default=list)
  payment_provider_ref = Column(String, nullable=True)
  needs_reconciliation = Column(Boolean, default=False)
  failure_reason = Column(String, nullable=True)
  created_at = Column(String, default=now_iso)
  updated_at = Column(String, default=now_iso)
  paid_at = Column(String, nullable=True)
  cancelled_at = Column(String, nullable=True)

  items = relationship(
      "OrderItem",
      lazy="selectin",
      order_by="OrderItem.position",
      cascade="all, delete-orphan",
  )


class OrderItem(Base):
  __tablename__ = "order_items"

  id = Column(String, primary_key=True)
  order_id = Column(String, ForeignKey("orders.id"), index=True)
  position = Column(Integer)
  # Plain references: the item must outlive edits or deletion of the listing.
  listing_id = Column(String)
  variant_id = Column(String, nullable=True)
  seller_user_id = Column(String)
  shop_id = Column(String)
  quantity = Column(Integer)
  unit_price_minor = Column(Integer)
  total_price_minor = Column(Integer)
  currency = Column(String)
  # Embedded snapshot document; see models.OrderItemSnapshot.
  snapshot = Column(JSON)
  tax_rate_bps = Column(Integer)
  estimated_ship_by_date = Column(String, nullable=True)
  # Set while this item holds inventory taken by the conditional decrement.
  stock_source = Column(String, nullable=True)
  stock_held = Column(Boolean, default=False)


class Discount(Base):
  __tablename__ = "discounts"

  code = Column(String, primary_key=True)
  type = Column(String)  # 'percentage' or 'fixed_amount'
  value = Column(Integer)  # Percentage (e.g., 10) or amount in minor units
  description = Column(String)


class WebhookEvent(Base):
  __tablename__ = "webhook_events"

  id = Column(Integer, primary_key=True, autoincrement=True)
  received_at = Column(String)
  event_type = Column(String)
  order_ref = Column(String, nullable=True)
  payment_intent_id = Column(String, nullable=True)
  outcome = Column(String)
  payload = Column(JSON, nullable=True)


# --- Data Access Helpers ---


async def get_listing(
    session: AsyncSession, listing_id: str
) -> Optional[Listing]:
  """Retrieves a listing by ID, with its shop, profiles and variants."""
  return await session.get(Listing, listing_id)


async def get_variant(
    session: AsyncSession, variant_id: str
) -> Optional[ListingVariant]:
  """Retrieves a listing variant by ID."""
  return await session.get(ListingVariant, variant_id)


async def get_cart(session: AsyncSession, user_id: str) -> Optional[Cart]:
  """Retrieves the cart owned by a buyer, if one was ever created."""
  result = await session.execute(select(Cart).where(Cart.user_id == user_id))
  return result.scalar_one_or_none()


async def get_or_create_cart(session: AsyncSession, user_id: str) -> Cart:
  """Retrieves the buyer's cart, creating it lazily on first use."""
  cart = await get_cart(session, user_id)
  if cart:
    return cart
  cart = Cart(id=new_id(), user_id=user_id, created_at=now_iso(), items=[])
  session.add(cart)
  await session.flush()
  return cart


async def get_cart_item(
    session: AsyncSession, cart_item_id: str
) -> Optional[CartItem]:
  """Retrieves a cart line by ID."""
  return await session.get(CartItem, cart_item_id)


async def find_cart_item(
    session: AsyncSession,
    cart_id: str,
    listing_id: str,
    variant_id: Optional[str],
) -> Optional[CartItem]:
  """Finds the cart line for a listing/variant pair."""
  stmt = select(CartItem).where(
      CartItem.cart_id == cart_id,
      CartItem.listing_id == listing_id,
  )
  if variant_id is None:
    stmt = stmt.where(CartItem.variant_id.is_(None))
  else:
    stmt = stmt.where(CartItem.variant_id == variant_id)
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def clear_cart(session: AsyncSession, cart_id: str) -> None:
  """Deletes every line of a cart. The cart itself is kept."""
  await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))


async def take_listing_stock(
    session: AsyncSession, listing_id: str, quantity: int
) -> bool:
  """Atomically decrements base quantity if sufficient stock exists."""
  stmt = (
      update(Listing)
      .where(Listing.id == listing_id)
      .where(Listing.base_quantity >= quantity)
      .values(base_quantity=Listing.base_quantity - quantity)
      .execution_options(synchronize_session=False)
  )
  result = await session.execute(stmt)
  return result.rowcount > 0


async def take_variant_stock(
    session: AsyncSession, variant_id: str, quantity: int
) -> bool:
  """Atomically decrements a variant's quantity override if sufficient.

  Variants without an override never match; their stock lives on the listing.
  """
  stmt = (
      update(ListingVariant)
      .where(ListingVariant.id == variant_id)
      .where(ListingVariant.quantity_override.is_not(None))
      .where(ListingVariant.quantity_override >= quantity)
      .values(quantity_override=ListingVariant.quantity_override - quantity)
      .execution_options(synchronize_session=False)
  )
  result = await session.execute(stmt)
  return result.rowcount > 0


async def variant_has_quantity_override(
    session: AsyncSession, variant_id: str
) -> bool:
  """Reads, inside the current transaction, whether a variant tracks stock."""
  override = await session.scalar(
      select(ListingVariant.quantity_override).where(
          ListingVariant.id == variant_id
      )
  )
  return override is not None


async def release_listing_stock(
    session: AsyncSession, listing_id: str, quantity: int
) -> bool:
  """Returns previously taken units to a listing's base quantity."""
  stmt = (
      update(Listing)
      .where(Listing.id == listing_id)
      .values(base_quantity=Listing.base_quantity + quantity)
      .execution_options(synchronize_session=False)
  )
  result = await session.execute(stmt)
  return result.rowcount > 0


async def release_variant_stock(
    session: AsyncSession, variant_id: str, quantity: int
) -> bool:
  """Returns previously taken units to a variant's quantity override."""
  stmt = (
      update(ListingVariant)
      .where(ListingVariant.id == variant_id)
      .where(ListingVariant.quantity_override.is_not(None))
      .values(quantity_override=ListingVariant.quantity_override + quantity)
      .execution_options(synchronize_session=False)
  )
  result = await session.execute(stmt)
  return result.rowcount > 0


async def get_order(
    session: AsyncSession, order_id: str, refresh: bool = False
) -> Optional[Order]:
  """Retrieves an order, with its items, by ID.

  Args:
    session: The database session to use.
    order_id: The system ID of the order.
    refresh: Reload the row even if the session already holds the order,
      e.g. after a rollback expired it.

  Returns:
    The order, or None.
  """
  return await session.get(Order, order_id, populate_existing=refresh)


async def get_order_by_idempotency_key(
    session: AsyncSession, idempotency_key: str
) -> Optional[Order]:
  """Retrieves the order created for an idempotency key."""
  result = await session.execute(
      select(Order).where(Order.idempotency_key == idempotency_key)
  )
  return result.scalar_one_or_none()


async def find_order(
    session: AsyncSession,
    order_id: Optional[str] = None,
    order_number: Optional[str] = None,
) -> Optional[Order]:
  """Finds an order by system ID or human-readable order number."""
  conditions = []
  if order_id:
    conditions.append(Order.id == order_id)
  if order_number:
    conditions.append(Order.order_number == order_number)
  if not conditions:
    return None
  result = await session.execute(select(Order).where(or_(*conditions)))
  return result.scalars().first()


async def list_orders(
    session: AsyncSession, buyer_user_id: str, offset: int, limit: int
) -> Tuple[List[Order], int]:
  """Retrieves a page of a buyer's orders, newest first, and the total."""
  result = await session.execute(
      select(Order)
      .where(Order.buyer_user_id == buyer_user_id)
      .order_by(Order.created_at.desc())
      .offset(offset)
      .limit(limit)
  )
  orders = list(result.scalars().all())
  total = await session.scalar(
      select(func.count())
      .select_from(Order)
      .where(Order.buyer_user_id == buyer_user_id)
  )
  return orders, total or 0


async def get_discounts_by_codes(
    session: AsyncSession, codes: List[str]
) -> List[Discount]:
  """Retrieves multiple discounts by their codes in a single query.

  Args:
    session: The database session to use.
    codes: A list of discount codes to look up.

  Returns:
    A list of matching Discount objects.
  """
  result = await session.execute(
      select(Discount).where(Discount.code.in_(codes))
  )
  return list(result.scalars().all())


async def log_webhook_event(
    session: AsyncSession,
    event_type: str,
    outcome: str,
    order_ref: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
  """Records an accepted webhook delivery and what it did."""
  session.add(
      WebhookEvent(
          received_at=now_iso(),
          event_type=event_type,
          order_ref=order_ref,
          payment_intent_id=payment_intent_id,
          outcome=outcome,
          payload=payload,
      )
  )
