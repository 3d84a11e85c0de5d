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

"""Cart service.

Carts are created lazily and only ever emptied by a successful checkout.
Every write re-runs the purchasability and advisory stock checks so buyers
learn about problems before they reach checkout. Prices shown in the cart are
always recomputed from the catalog; nothing price-related is stored on a line.
"""

import logging

import db
from exceptions import error_for_violations
from exceptions import ForbiddenError
from exceptions import ResourceNotFoundError
from models import AddCartItemRequest
from models import CartLineResponse
from models import CartResponse
from models import UpdateCartItemRequest
from services import personalization
from services import pricing
from services import stock_guard
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class CartService:
  """Service for reading and editing a buyer's cart."""

  def __init__(self, session: AsyncSession):
    self.session = session

  async def get_cart(self, buyer_user_id: str) -> CartResponse:
    try:
      cart = await db.get_or_create_cart(self.session, buyer_user_id)
      await self.session.commit()
    except Exception:
      await self.session.rollback()
      raise
    return self._to_response(cart)

  async def add_item(
      self, buyer_user_id: str, item_req: AddCartItemRequest
  ) -> CartResponse:
    """Adds a listing to the cart, merging with an existing line for it."""
    try:
      listing = await db.get_listing(self.session, item_req.listing_id)
      if listing is None:
        raise ResourceNotFoundError("Listing not found")
      variant = None
      if item_req.variant_id:
        variant = await db.get_variant(self.session, item_req.variant_id)
        if variant is None or variant.listing_id != listing.id:
          raise ResourceNotFoundError("Variant not found")

      violation = stock_guard.purchase_violation(
          listing, variant, buyer_user_id
      )
      if violation is not None:
        raise error_for_violations([violation])

      fields = listing.personalization_fields or []
      personalization.assert_valid(fields, item_req.personalization)
      answers = personalization.sanitize(fields, item_req.personalization)

      cart = await db.get_or_create_cart(self.session, buyer_user_id)
      line = await db.find_cart_item(
          self.session, cart.id, listing.id, item_req.variant_id
      )
      quantity = item_req.quantity + (line.quantity if line else 0)
      line_id = line.id if line else None
      violation = stock_guard.stock_violation(
          listing,
          variant,
          quantity,
          line_id,
          stock_guard.requested_from_row(
              cart.items, listing, variant, line_id
          ),
      )
      if violation is not None:
        raise error_for_violations([violation])

      if line is not None:
        line.quantity = quantity
        if answers:
          line.personalization = answers
      else:
        cart.items.append(
            db.CartItem(
                id=db.new_id(),
                listing=listing,
                variant=variant,
                quantity=quantity,
                personalization=answers or None,
                created_at=db.now_iso(),
            )
        )
      await self.session.commit()
    except Exception:
      await self.session.rollback()
      raise

    logger.info(
        "Buyer %s has %d of listing %s in their cart",
        buyer_user_id,
        quantity,
        listing.id,
    )
    return self._to_response(cart)

  async def update_item(
      self,
      buyer_user_id: str,
      cart_item_id: str,
      update_req: UpdateCartItemRequest,
  ) -> CartResponse:
    """Sets the quantity of a cart line after an advisory stock check."""
    try:
      cart, line = await self._owned_line(buyer_user_id, cart_item_id)
      violation = stock_guard.check_line(
          line.listing,
          line.variant,
          buyer_user_id,
          update_req.quantity,
          line.id,
          stock_guard.requested_from_row(
              cart.items, line.listing, line.variant, line.id
          ),
      )
      if violation is not None:
        raise error_for_violations([violation])
      line.quantity = update_req.quantity
      await self.session.commit()
    except Exception:
      await self.session.rollback()
      raise
    return self._to_response(cart)

  async def remove_item(
      self, buyer_user_id: str, cart_item_id: str
  ) -> CartResponse:
    try:
      cart, line = await self._owned_line(buyer_user_id, cart_item_id)
      cart.items.remove(line)
      await self.session.commit()
    except Exception:
      await self.session.rollback()
      raise
    return self._to_response(cart)

  async def _owned_line(self, buyer_user_id: str, cart_item_id: str):
    line = await db.get_cart_item(self.session, cart_item_id)
    if line is None:
      raise ResourceNotFoundError("Cart item not found")
    cart = await db.get_cart(self.session, buyer_user_id)
    if cart is None or line.cart_id != cart.id:
      raise ForbiddenError("This cart item belongs to another buyer")
    return cart, line

  def _to_response(self, cart: db.Cart) -> CartResponse:
    lines = []
    for line in cart.items:
      listing = line.listing
      unit_price = pricing.effective_price(listing, line.variant)
      lines.append(
          CartLineResponse(
              id=line.id,
              listing_id=listing.id,
              variant_id=line.variant_id,
              title=listing.title,
              quantity=line.quantity,
              unit_price_minor=unit_price,
              line_total_minor=pricing.line_total(unit_price, line.quantity),
              currency=listing.currency,
              available_quantity=pricing.effective_stock(
                  listing, line.variant
              ),
              personalization=line.personalization,
          )
      )
    return CartResponse(
        id=cart.id,
        items=lines,
        subtotal_minor=sum(line.line_total_minor for line in lines),
        currency=lines[0].currency if lines else None,
    )
