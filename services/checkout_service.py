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

"""Checkout service for turning a buyer's cart into an order.

This module provides the `CheckoutService` class, which encapsulates the
business logic for checking out a cart and for reading the resulting orders.

Key responsibilities include:
- Idempotency: an order already created for the supplied key is returned
  unchanged (replay), without re-validation, re-pricing or stock movement.
- Validating every cart line (purchasability and advisory stock, with lines
  that share a stock row totalled) and reporting all failing lines at once.
- Pricing lines from current catalog state and computing frozen totals,
  including shipping and discounts.
- Creating the order, its items and their snapshots, taking stock (when
  checkout is the decrement point) and clearing the cart in one transaction.
- Creating the payment intent for a new order.
"""

import logging
import secrets
import string
import time
from typing import List

import db
from enums import OrderStatus
from enums import PaymentStatus
from enums import StockDecrementPoint
from enums import ViolationCode
from exceptions import CartEmptyError
from exceptions import error_for_violations
from exceptions import IdempotencyConflictError
from exceptions import InsufficientStockError
from exceptions import InvalidRequestError
from exceptions import OrderConflictError
from exceptions import ResourceNotFoundError
from models import CheckoutRequest
from models import CheckoutResponse
from models import LineViolation
from models import OrderItemResponse
from models import OrderItemSnapshot
from models import OrderListResponse
from models import OrderResponse
from models import PaymentIntent
from services import pricing
from services import snapshot
from services import stock_guard
from services import tax
from services.fulfillment_service import FulfillmentService
from services.payment_provider import PaymentProvider
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
  digits = []
  while True:
    value, rem = divmod(value, 36)
    digits.append(_BASE36[rem])
    if value == 0:
      return "".join(reversed(digits))


def generate_order_number() -> str:
  """Returns a human-readable order number, e.g. `ORD-LZ3K8Q1A-7XQ2`.

  The millisecond timestamp orders numbers by creation; the random suffix
  separates orders created in the same millisecond. The unique constraint on
  `orders.order_number` is the final guard.
  """
  stamp = _base36(int(time.time() * 1000))
  suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
  return f"ORD-{stamp}-{suffix}"


def to_order_response(order: db.Order) -> OrderResponse:
  """Builds the order read model from a loaded order and its items."""
  items = [
      OrderItemResponse(
          id=item.id,
          listing_id=item.listing_id,
          variant_id=item.variant_id,
          shop_id=item.shop_id,
          quantity=item.quantity,
          unit_price_minor=item.unit_price_minor,
          total_price_minor=item.total_price_minor,
          currency=item.currency,
          tax_rate_bps=item.tax_rate_bps,
          estimated_ship_by_date=item.estimated_ship_by_date,
          snapshot=OrderItemSnapshot.model_validate(item.snapshot),
      )
      for item in order.items
  ]
  return OrderResponse(
      id=order.id,
      order_number=order.order_number,
      status=order.status,
      payment_status=order.payment_status,
      subtotal_minor=order.subtotal_minor,
      shipping_total_minor=order.shipping_total_minor,
      discount_total_minor=order.discount_total_minor,
      grand_total_minor=order.grand_total_minor,
      currency=order.currency,
      shipping_address=order.shipping_address,
      discount_codes=order.discount_codes or [],
      needs_reconciliation=bool(order.needs_reconciliation),
      created_at=order.created_at,
      updated_at=order.updated_at,
      paid_at=order.paid_at,
      cancelled_at=order.cancelled_at,
      items=items,
  )


class CheckoutService:
  """Service for checking out carts and reading orders."""

  def __init__(
      self,
      session: AsyncSession,
      fulfillment_service: FulfillmentService,
      payment_provider: PaymentProvider,
      stock_decrement_point: StockDecrementPoint = StockDecrementPoint.PAYMENT,
  ):
    self.session = session
    self.fulfillment_service = fulfillment_service
    self.payment_provider = payment_provider
    self.stock_decrement_point = StockDecrementPoint(stock_decrement_point)

  async def checkout(
      self,
      buyer_user_id: str,
      idempotency_key: str,
      checkout_req: CheckoutRequest,
  ) -> CheckoutResponse:
    """Creates an order from the buyer's cart, or replays a prior one.

    Args:
      buyer_user_id: The resolved buyer identity.
      idempotency_key: Caller-supplied key; one order per key, ever.
      checkout_req: Shipping address and optional discount codes.

    Returns:
      The order with its items, the payment intent when one was created, and
      whether this was a replay.
    """
    logger.info(
        "Checkout for buyer %s with idempotency key %s",
        buyer_user_id,
        idempotency_key,
    )

    try:
      # The first statement opens an immediate transaction, so concurrent
      # requests with the same key queue behind this lookup.
      existing = await db.get_order_by_idempotency_key(
          self.session, idempotency_key
      )
      if existing is None:
        order = await self._create_order(
            buyer_user_id, idempotency_key, checkout_req
        )
        await self.session.commit()
    except IntegrityError:
      await self.session.rollback()
      existing = await db.get_order_by_idempotency_key(
          self.session, idempotency_key
      )
      if existing is None:
        logger.warning(
            "Order insert for key %s hit a unique constraint", idempotency_key
        )
        raise OrderConflictError(
            "The order could not be created, please retry"
        ) from None
      logger.info(
          "Concurrent checkout with key %s resolved to order %s",
          idempotency_key,
          existing.order_number,
      )
    except Exception:
      await self.session.rollback()
      raise

    if existing is not None:
      return await self._replay(existing, buyer_user_id)

    logger.info(
        "Created order %s for buyer %s: %d item(s), grand total %d %s",
        order.order_number,
        buyer_user_id,
        len(order.items),
        order.grand_total_minor,
        order.currency,
    )
    payment = await self._attach_payment_intent(order)
    return CheckoutResponse(
        order=to_order_response(order), payment=payment, replayed=False
    )

  async def _replay(
      self, order: db.Order, buyer_user_id: str
  ) -> CheckoutResponse:
    # End the read transaction before any provider call.
    await self.session.commit()
    if order.buyer_user_id != buyer_user_id:
      logger.warning(
          "Buyer %s reused the idempotency key of order %s",
          buyer_user_id,
          order.order_number,
      )
      raise IdempotencyConflictError(
          "This idempotency key was already used for another order"
      )
    logger.info("Replaying order %s", order.order_number)
    payment = None
    if (
        order.status == OrderStatus.PENDING_PAYMENT.value
        and not order.payment_provider_ref
    ):
      payment = await self._attach_payment_intent(order)
    return CheckoutResponse(
        order=to_order_response(order), payment=payment, replayed=True
    )

  async def _attach_payment_intent(self, order: db.Order) -> PaymentIntent:
    intent = await self.payment_provider.create_payment_intent(order)
    try:
      order.payment_provider_ref = intent.id
      order.updated_at = db.now_iso()
      await self.session.commit()
    except Exception:
      await self.session.rollback()
      raise
    return intent

  async def _create_order(
      self,
      buyer_user_id: str,
      idempotency_key: str,
      checkout_req: CheckoutRequest,
  ) -> db.Order:
    """Validates the cart and stages the order inside the open transaction."""
    cart = await db.get_cart(self.session, buyer_user_id)
    if cart is None or not cart.items:
      raise CartEmptyError()
    lines = list(cart.items)

    purchase_violations = {}
    for line in lines:
      violation = stock_guard.purchase_violation(
          line.listing, line.variant, buyer_user_id, line.id
      )
      if violation is not None:
        purchase_violations[line.id] = violation
    # Lines that share a stock row are checked against it together.
    stock_violations = stock_guard.pooled_stock_violations(
        [line for line in lines if line.id not in purchase_violations]
    )
    violations: List[LineViolation] = [
        purchase_violations.get(line.id) or stock_violations[line.id]
        for line in lines
        if line.id in purchase_violations or line.id in stock_violations
    ]
    if violations:
      logger.info(
          "Checkout for buyer %s rejected: %s",
          buyer_user_id,
          ", ".join(v.code.value for v in violations),
      )
      raise error_for_violations(violations)

    currencies = {line.listing.currency for line in lines}
    if len(currencies) > 1:
      raise InvalidRequestError(
          "All items in an order must be priced in the same currency",
          details={"currencies": sorted(currencies)},
      )
    currency = currencies.pop()

    address = checkout_req.shipping_address
    unit_prices = [
        pricing.effective_price(line.listing, line.variant) for line in lines
    ]
    line_totals = [
        pricing.line_total(price, line.quantity)
        for price, line in zip(unit_prices, lines)
    ]
    shipping = self.fulfillment_service.calculate_shipping(
        [(line.listing, line.quantity) for line in lines], address.country
    )
    codes = list(dict.fromkeys(c.strip() for c in checkout_req.discount_codes))
    codes = [c for c in codes if c]
    discounts = []
    if codes:
      found = {
          d.code: d
          for d in await db.get_discounts_by_codes(self.session, codes)
      }
      discounts = [found[c] for c in codes if c in found]
    totals = pricing.compute_totals(
        line_totals,
        shipping,
        pricing.discount_total(sum(line_totals), discounts),
    )

    tax_rate = tax.get_tax_rate(address.country)
    now = db.now_iso()
    items = []
    for position, line in enumerate(lines):
      listing = line.listing
      item_snapshot = snapshot.build_snapshot(
          listing, line.variant, line.personalization
      )
      item = db.OrderItem(
          id=db.new_id(),
          position=position,
          listing_id=listing.id,
          variant_id=line.variant_id,
          seller_user_id=listing.seller_user_id,
          shop_id=listing.shop_id,
          quantity=line.quantity,
          unit_price_minor=unit_prices[position],
          total_price_minor=line_totals[position],
          currency=currency,
          snapshot=item_snapshot.model_dump(mode="json"),
          tax_rate_bps=tax_rate.rate_bps,
          estimated_ship_by_date=snapshot.estimated_ship_by(item_snapshot),
          stock_held=False,
      )
      if self.stock_decrement_point == StockDecrementPoint.CHECKOUT:
        await self._take_stock(item, line)
      items.append(item)

    order = db.Order(
        id=db.new_id(),
        order_number=generate_order_number(),
        idempotency_key=idempotency_key,
        buyer_user_id=buyer_user_id,
        status=OrderStatus.PENDING_PAYMENT.value,
        payment_status=PaymentStatus.PENDING.value,
        subtotal_minor=totals.subtotal_minor,
        shipping_total_minor=totals.shipping_total_minor,
        discount_total_minor=totals.discount_total_minor,
        grand_total_minor=totals.grand_total_minor,
        currency=currency,
        shipping_address=address.model_dump(mode="json"),
        discount_codes=[d.code for d in discounts],
        needs_reconciliation=False,
        created_at=now,
        updated_at=now,
        items=items,
    )
    self.session.add(order)
    await db.clear_cart(self.session, cart.id)
    return order

  async def _take_stock(self, item: db.OrderItem, line: db.CartItem) -> None:
    source = await stock_guard.take_stock(
        self.session, item.listing_id, item.variant_id, item.quantity
    )
    if source is None:
      logger.info(
          "Lost the race for %d unit(s) of listing %s (variant %s)",
          item.quantity,
          item.listing_id,
          item.variant_id,
      )
      violation = LineViolation(
          code=ViolationCode.INSUFFICIENT_STOCK,
          message=f"'{line.listing.title}' just sold out",
          cart_item_id=line.id,
          listing_id=item.listing_id,
          variant_id=item.variant_id,
          requested=item.quantity,
      )
      raise InsufficientStockError(
          violation.message,
          details=[violation.model_dump(mode="json")],
          status_code=409,
      )
    item.stock_source = source.value
    item.stock_held = True

  async def get_order(self, buyer_user_id: str, order_id: str) -> OrderResponse:
    """Retrieves one of the buyer's orders by ID or order number."""
    order = await db.find_order(
        self.session, order_id=order_id, order_number=order_id
    )
    if order is None or order.buyer_user_id != buyer_user_id:
      raise ResourceNotFoundError("Order not found")
    return to_order_response(order)

  async def list_orders(
      self, buyer_user_id: str, page: int = 1, page_size: int = 20
  ) -> OrderListResponse:
    """Lists the buyer's orders, newest first."""
    orders, total = await db.list_orders(
        self.session, buyer_user_id, (page - 1) * page_size, page_size
    )
    return OrderListResponse(
        orders=[to_order_response(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )
