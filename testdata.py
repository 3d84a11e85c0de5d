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

"""Shared fixtures for the checkout engine tests.

Provides a temporary SQLite database wired the same way as the server's, and
a small seeded catalog:

- `lst_scarf` (seller_1): 1000 minor units, 5 in stock, domestic shipping 500
  per line, ready to ship in 1-3 days. Variants: `var_red` (1500, 3 in stock),
  `var_blue` (sold out via a 0 override) and `var_green` (no overrides).
- `lst_mug` (seller_1): the last unit, with a required "Name" personalization
  field.
- `lst_draft`: unpublished. `lst_own`: sold by `BUYER`.
- Discounts `FIXED200`, `PCT10` and `HUGE`.
"""

import os
import shutil
import tempfile
from typing import Dict, List, Optional, Tuple

from absl import flags
import db
from models import ShippingAddress
from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

FLAGS = flags.FLAGS

SELLER = "seller_1"
BUYER = "buyer_1"
OTHER_BUYER = "buyer_2"

TR_ADDRESS = ShippingAddress(
    full_name="Deniz Yilmaz",
    line1="Istiklal Cd. 10",
    city="Istanbul",
    postal_code="34430",
    country="TR",
)
DE_ADDRESS = ShippingAddress(
    full_name="Deniz Yilmaz",
    line1="Hauptstr. 1",
    city="Berlin",
    postal_code="10115",
    country="DE",
)

# (listing_id, variant_id, quantity, personalization)
CartLine = Tuple[str, Optional[str], int, Optional[Dict[str, str]]]


def ensure_flags_parsed() -> None:
  """Lets tests read flag defaults without running absl's main."""
  if not FLAGS.is_parsed():
    FLAGS.mark_as_parsed()


class TestDatabase:
  """A throwaway database file with the production engine settings."""

  def __init__(self) -> None:
    self.test_dir = tempfile.mkdtemp()
    self.path = os.path.join(self.test_dir, "test_checkout.db")
    # No pooling: each asyncio.run() gets fresh connections on its own loop.
    self.engine = db.create_engine(self.path, poolclass=NullPool)
    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

  async def create_schema(self) -> None:
    async with self.engine.begin() as conn:
      await conn.run_sync(db.Base.metadata.create_all)

  async def dispose(self) -> None:
    await self.engine.dispose()

  def cleanup(self) -> None:
    shutil.rmtree(self.test_dir, ignore_errors=True)


def catalog() -> List[db.Base]:
  """Returns fresh, unsaved rows for the seeded catalog."""
  return [
      db.Shop(id="shop_1", owner_user_id=SELLER, name="Atolye"),
      db.Shop(id="shop_buyer", owner_user_id=BUYER, name="Buyer's Shop"),
      db.ProcessingProfile(
          id="pp_ready",
          shop_id="shop_1",
          mode="READY_TO_SHIP",
          min_days=1,
          max_days=3,
      ),
      db.ShippingProfile(
          id="sp_1",
          shop_id="shop_1",
          rules={
              "domestic": {
                  "base_price_minor": 500,
                  "additional_item_price_minor": 0,
              },
              "international": {
                  "base_price_minor": 2000,
                  "additional_item_price_minor": 500,
              },
          },
      ),
      db.Listing(
          id="lst_scarf",
          shop_id="shop_1",
          seller_user_id=SELLER,
          slug="scarf",
          title="Hand-knitted Scarf",
          listing_type="PHYSICAL",
          status="PUBLISHED",
          compliance_status="OK",
          base_price_minor=1000,
          base_quantity=5,
          currency="TRY",
          processing_profile_id="pp_ready",
          shipping_profile_id="sp_1",
      ),
      db.ListingVariant(
          id="var_red",
          listing_id="lst_scarf",
          is_active=True,
          selections=[
              {"group": "Color", "value": "Red"},
              {"group": "Size", "value": "L"},
          ],
          price_minor_override=1500,
          quantity_override=3,
      ),
      db.ListingVariant(
          id="var_blue",
          listing_id="lst_scarf",
          is_active=True,
          selections=[{"group": "Color", "value": "Blue"}],
          quantity_override=0,
      ),
      db.ListingVariant(
          id="var_green",
          listing_id="lst_scarf",
          is_active=True,
          selections=[{"group": "Color", "value": "Green"}],
      ),
      db.Listing(
          id="lst_mug",
          shop_id="shop_1",
          seller_user_id=SELLER,
          slug="mug",
          title="Ceramic Mug",
          listing_type="PHYSICAL",
          status="PUBLISHED",
          compliance_status="OK",
          base_price_minor=4500,
          base_quantity=1,
          currency="TRY",
          return_policy_type="EXCHANGES_ONLY",
          return_window_days=7,
      ),
      db.PersonalizationField(
          id="pf_name",
          listing_id="lst_mug",
          label="Name",
          is_required=True,
          min_length=2,
          max_length=12,
          position=0,
      ),
      db.Listing(
          id="lst_draft",
          shop_id="shop_1",
          seller_user_id=SELLER,
          slug="draft",
          title="Beret",
          status="DRAFT",
          base_price_minor=1200,
          base_quantity=3,
          currency="TRY",
      ),
      db.Listing(
          id="lst_own",
          shop_id="shop_buyer",
          seller_user_id=BUYER,
          slug="own",
          title="Buyer's Own Bag",
          status="PUBLISHED",
          base_price_minor=3000,
          base_quantity=2,
          currency="TRY",
      ),
      db.Discount(
          code="FIXED200", type="fixed_amount", value=200, description="2 off"
      ),
      db.Discount(
          code="PCT10", type="percentage", value=10, description="10% off"
      ),
      db.Discount(
          code="HUGE", type="fixed_amount", value=1000000, description="all"
      ),
  ]


async def seed(session: AsyncSession) -> None:
  session.add_all(catalog())
  await session.commit()


async def fill_cart(
    session: AsyncSession, user_id: str, lines: List[CartLine]
) -> None:
  """Puts lines straight into a buyer's cart, skipping the cart checks."""
  cart = await db.get_or_create_cart(session, user_id)
  for listing_id, variant_id, quantity, personalization in lines:
    cart.items.append(
        db.CartItem(
            id=db.new_id(),
            listing_id=listing_id,
            variant_id=variant_id,
            quantity=quantity,
            personalization=personalization,
            created_at=db.now_iso(),
        )
    )
  await session.commit()


async def listing_quantity(session: AsyncSession, listing_id: str) -> int:
  return await session.scalar(
      select(db.Listing.base_quantity).where(db.Listing.id == listing_id)
  )


async def variant_quantity(
    session: AsyncSession, variant_id: str
) -> Optional[int]:
  return await session.scalar(
      select(db.ListingVariant.quantity_override).where(
          db.ListingVariant.id == variant_id
      )
  )


async def count_rows(session: AsyncSession, model) -> int:
  return await session.scalar(select(func.count()).select_from(model))
