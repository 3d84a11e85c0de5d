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

"""Stock integrity guard.

Two kinds of operation live here and must not be confused:

- Checks (`purchase_violation`, `stock_violation`, `check_line`,
  `pooled_stock_violations`) read catalog rows that were already loaded and
  return `LineViolation` values. Lines drawing on the same stock row are
  totalled before comparing. They are advisory and used at cart
  add/update and before a checkout opens its writes.
- `take_stock` is the only code allowed to remove inventory. It issues the
  conditional update statements in `db` and reports which row it took from,
  or None when no row had enough stock. `release_stock` puts held units back.
"""

import collections
import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple

import db
from enums import ComplianceStatus
from enums import ListingStatus
from enums import StockSource
from enums import ViolationCode
from models import LineViolation
from services import pricing
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_BLOCKED_COMPLIANCE = (
    ComplianceStatus.FLAGGED.value,
    ComplianceStatus.REMOVED.value,
)


def purchase_violation(
    listing: Optional[db.Listing],
    variant: Optional[db.ListingVariant],
    buyer_user_id: str,
    cart_item_id: Optional[str] = None,
) -> Optional[LineViolation]:
  """Checks that a buyer may purchase a listing (and variant) at all."""
  variant_id = variant.id if variant is not None else None
  listing_id = listing.id if listing is not None else None

  def _unavailable(message: str) -> LineViolation:
    return LineViolation(
        code=ViolationCode.LISTING_NOT_AVAILABLE,
        message=message,
        cart_item_id=cart_item_id,
        listing_id=listing_id,
        variant_id=variant_id,
    )

  if listing is None:
    return _unavailable("This listing no longer exists")
  if listing.seller_user_id == buyer_user_id:
    return LineViolation(
        code=ViolationCode.SELF_PURCHASE_NOT_ALLOWED,
        message="You cannot purchase your own listing",
        cart_item_id=cart_item_id,
        listing_id=listing_id,
        variant_id=variant_id,
    )
  if listing.status != ListingStatus.PUBLISHED.value:
    return _unavailable(f"'{listing.title}' is not available for purchase")
  if listing.compliance_status in _BLOCKED_COMPLIANCE:
    return _unavailable(f"'{listing.title}' is currently unavailable")
  if listing.is_private and buyer_user_id not in (
      listing.private_access_user_ids or []
  ):
    return _unavailable(f"'{listing.title}' is not available for purchase")
  if variant is not None and (
      variant.listing_id != listing.id or not variant.is_active
  ):
    return _unavailable(f"The selected option of '{listing.title}' is gone")
  return None


def stock_key(
    listing: db.Listing, variant: Optional[db.ListingVariant]
) -> Tuple[str, str]:
  """Identifies the stock row a line draws on.

  A variant with a quantity override owns its stock. Every other line,
  including variants without an override, shares the listing's base quantity.
  """
  if variant is not None and variant.quantity_override is not None:
    return (StockSource.VARIANT.value, variant.id)
  return (StockSource.LISTING.value, listing.id)


def stock_violation(
    listing: db.Listing,
    variant: Optional[db.ListingVariant],
    quantity: int,
    cart_item_id: Optional[str] = None,
    already_requested: int = 0,
) -> Optional[LineViolation]:
  """Advisory check of requested quantity against current effective stock.

  `already_requested` counts units other lines ask of the same stock row.
  """
  available = pricing.effective_stock(listing, variant)
  requested = quantity + already_requested
  if requested <= available:
    return None
  if available == 0:
    message = f"'{listing.title}' is sold out"
  elif already_requested:
    message = (
        f"Only {available} of '{listing.title}' left in stock,"
        f" {already_requested} already in your cart"
    )
  else:
    message = f"Only {available} of '{listing.title}' left in stock"
  return LineViolation(
      code=ViolationCode.INSUFFICIENT_STOCK,
      message=message,
      cart_item_id=cart_item_id,
      listing_id=listing.id,
      variant_id=variant.id if variant is not None else None,
      requested=requested,
      available=available,
  )


def requested_from_row(
    lines: Iterable[db.CartItem],
    listing: db.Listing,
    variant: Optional[db.ListingVariant],
    exclude_cart_item_id: Optional[str] = None,
) -> int:
  """Sums the units cart lines ask of the row `listing`/`variant` draws on."""
  key = stock_key(listing, variant)
  return sum(
      line.quantity
      for line in lines
      if line.id != exclude_cart_item_id
      and stock_key(line.listing, line.variant) == key
  )


def pooled_stock_violations(
    lines: Sequence[db.CartItem],
) -> Dict[str, LineViolation]:
  """Checks cart lines against stock, totalling lines that share a row.

  Returns:
    Violations keyed by cart item id. Every line of an over-requested row is
    reported.
  """
  totals: Dict[Tuple[str, str], int] = collections.Counter()
  for line in lines:
    totals[stock_key(line.listing, line.variant)] += line.quantity
  violations = {}
  for line in lines:
    others = totals[stock_key(line.listing, line.variant)] - line.quantity
    violation = stock_violation(
        line.listing, line.variant, line.quantity, line.id, others
    )
    if violation is not None:
      violations[line.id] = violation
  return violations


def check_line(
    listing: Optional[db.Listing],
    variant: Optional[db.ListingVariant],
    buyer_user_id: str,
    quantity: int,
    cart_item_id: Optional[str] = None,
    already_requested: int = 0,
) -> Optional[LineViolation]:
  """Runs the purchasability check, then the advisory stock check."""
  violation = purchase_violation(listing, variant, buyer_user_id, cart_item_id)
  if violation is not None:
    return violation
  return stock_violation(
      listing, variant, quantity, cart_item_id, already_requested
  )


async def take_stock(
    session: AsyncSession,
    listing_id: str,
    variant_id: Optional[str],
    quantity: int,
) -> Optional[StockSource]:
  """Performs the authoritative conditional decrement for one item.

  A variant with a quantity override owns its stock; any other line draws on
  the listing's base quantity. Each attempt is a single
  `UPDATE ... WHERE quantity >= n` evaluated by the database.

  Args:
    session: Session whose transaction the decrement joins.
    listing_id: Listing of the item.
    variant_id: Variant of the item, if any.
    quantity: Units to take.

  Returns:
    The row the units were taken from, or None if it lacked stock.
  """
  if variant_id is not None:
    if await db.take_variant_stock(session, variant_id, quantity):
      return StockSource.VARIANT
    if await db.variant_has_quantity_override(session, variant_id):
      return None
  if await db.take_listing_stock(session, listing_id, quantity):
    return StockSource.LISTING
  return None


async def release_stock(session: AsyncSession, item: db.OrderItem) -> None:
  """Returns the units an order item holds to the row they came from."""
  if not item.stock_held:
    return
  if item.stock_source == StockSource.VARIANT.value:
    released = await db.release_variant_stock(
        session, item.variant_id, item.quantity
    )
  else:
    released = await db.release_listing_stock(
        session, item.listing_id, item.quantity
    )
  if not released:
    logger.warning(
        "Could not return %d unit(s) of order item %s to %s %s",
        item.quantity,
        item.id,
        item.stock_source,
        item.variant_id or item.listing_id,
    )
  item.stock_held = False
