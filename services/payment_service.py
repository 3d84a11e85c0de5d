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

"""Payment webhook reconciler.

Applies verified payment provider events to orders. Every delivery runs in a
single immediate transaction, so duplicate or concurrent deliveries for the
same order are applied one after the other and the second one sees the first
one's result.

Order state machine:
  PENDING_PAYMENT -> PAID | PAYMENT_FAILED | CANCELLED
  PAYMENT_FAILED  -> PAID (a late success still stands)
  CANCELLED       -> PAID (likewise)
PAID is terminal. A success takes stock for every item not already holding
it; a failure or cancellation releases what the items hold.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional

import db
from enums import OrderStatus
from enums import PaymentEventType
from enums import PaymentStatus
from exceptions import ResourceNotFoundError
from exceptions import StockReconciliationError
import httpx
from models import PaymentWebhookEvent
from models import WebhookResult
from services import stock_guard
from services.checkout_service import to_order_response
from services.payment_provider import encode_event
from services.payment_provider import PaymentProvider
from services.payment_provider import sign_payload
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class PaymentService:
  """Service for reconciling payment provider events with orders."""

  def __init__(
      self,
      session: AsyncSession,
      payment_provider: PaymentProvider,
      webhook_secret: str,
      order_events_webhook_url: Optional[str] = None,
  ):
    self.session = session
    self.payment_provider = payment_provider
    self.webhook_secret = webhook_secret
    self.order_events_webhook_url = order_events_webhook_url

  async def handle_webhook(
      self, payload: bytes, signature: Optional[str]
  ) -> WebhookResult:
    """Verifies a raw webhook delivery and applies it.

    Nothing is read or written before the signature has been checked.
    """
    event = self.payment_provider.verify_webhook(
        payload, signature, self.webhook_secret
    )
    return await self.process_event(event)

  async def simulate_success(self, order_id: str) -> WebhookResult:
    """Signs a `payment.succeeded` event for an order and delivers it."""
    order = await db.find_order(
        self.session, order_id=order_id, order_number=order_id
    )
    if order is None:
      raise ResourceNotFoundError("Order not found")
    event = PaymentWebhookEvent(
        id=f"evt_sim_{secrets.token_hex(8)}",
        type=PaymentEventType.SUCCEEDED.value,
        order_id=order.id,
        order_number=order.order_number,
        payment_intent_id=(
            order.payment_provider_ref or f"sim_pi_{secrets.token_hex(8)}"
        ),
        amount_minor=order.grand_total_minor,
        currency=order.currency,
    )
    payload = encode_event(event)
    return await self.handle_webhook(
        payload, sign_payload(payload, self.webhook_secret)
    )

  async def process_event(self, event: PaymentWebhookEvent) -> WebhookResult:
    """Applies one verified event. Unknown types are accepted and ignored."""
    order_ref = event.order_id or event.order_number
    logger.info(
        "Payment event %s (%s) for order %s", event.id, event.type, order_ref
    )
    try:
      return await self._process(event, order_ref)
    except StockReconciliationError:
      raise
    except Exception:
      await self.session.rollback()
      raise

  async def _process(
      self, event: PaymentWebhookEvent, order_ref: Optional[str]
  ) -> WebhookResult:
    try:
      event_type = PaymentEventType(event.type)
    except ValueError:
      logger.warning(
          "Ignoring payment event %s of unknown type %s", event.id, event.type
      )
      await self._finish(event, "ignored_unknown_type")
      return WebhookResult(
          processed=False, detail=f"Unhandled event type {event.type}"
      )

    order = await db.find_order(
        self.session, order_id=event.order_id, order_number=event.order_number
    )
    if order is None:
      logger.warning(
          "Payment event %s references unknown order %s", event.id, order_ref
      )
      await self._finish(event, "order_not_found")
      return WebhookResult(processed=False, detail="Order not found")

    if order.payment_status == PaymentStatus.COMPLETED.value:
      logger.info(
          "Order %s is already paid, ignoring %s", order.order_number, event.id
      )
      await self._finish(event, "already_paid")
      return WebhookResult(
          processed=False,
          order_id=order.id,
          status=order.status,
          detail="Order already paid",
      )

    if event_type == PaymentEventType.SUCCEEDED:
      return await self._handle_succeeded(order, event)
    if event_type == PaymentEventType.FAILED:
      return await self._handle_failed(order, event)
    return await self._handle_canceled(order, event)

  async def _finish(
      self,
      event: PaymentWebhookEvent,
      outcome: str,
      order: Optional[db.Order] = None,
  ) -> None:
    await db.log_webhook_event(
        self.session,
        event_type=event.type,
        outcome=outcome,
        order_ref=order.id if order else (event.order_id or event.order_number),
        payment_intent_id=event.payment_intent_id,
        payload=event.model_dump(mode="json", exclude_none=True),
    )
    await self.session.commit()

  async def _handle_succeeded(
      self, order: db.Order, event: PaymentWebhookEvent
  ) -> WebhookResult:
    if (
        event.amount_minor is not None
        and event.amount_minor != order.grand_total_minor
    ):
      logger.warning(
          "Payment %s for order %s is %d, order total is %d",
          event.payment_intent_id,
          order.order_number,
          event.amount_minor,
          order.grand_total_minor,
      )

    conflicts: List[Dict[str, Any]] = []
    for item in order.items:
      if item.stock_held:
        continue
      source = await stock_guard.take_stock(
          self.session, item.listing_id, item.variant_id, item.quantity
      )
      if source is None:
        conflicts.append({
            "order_item_id": item.id,
            "listing_id": item.listing_id,
            "variant_id": item.variant_id,
            "quantity": item.quantity,
        })
        continue
      item.stock_source = source.value
      item.stock_held = True

    if conflicts:
      order_id = order.id
      order_number = order.order_number
      await self.session.rollback()
      await self._flag_for_reconciliation(order_id, event)
      logger.error(
          "Payment %s for order %s (%s) succeeded but stock is gone for %s;"
          " order needs manual reconciliation",
          event.payment_intent_id,
          order_number,
          order_id,
          conflicts,
      )
      raise StockReconciliationError(
          f"Order {order_number} was paid but some items are out of stock",
          details={"order_id": order_id, "items": conflicts},
      )

    self._mark_paid(order, event)
    await self._finish(event, "paid", order)
    logger.info(
        "Order %s paid via %s", order.order_number, event.payment_intent_id
    )
    await self._notify_order_paid(order)
    return WebhookResult(processed=True, order_id=order.id, status=order.status)

  def _mark_paid(self, order: db.Order, event: PaymentWebhookEvent) -> None:
    now = db.now_iso()
    order.status = OrderStatus.PAID.value
    order.payment_status = PaymentStatus.COMPLETED.value
    order.payment_provider_ref = (
        event.payment_intent_id or order.payment_provider_ref
    )
    order.paid_at = now
    order.updated_at = now
    order.failure_reason = None

  async def _flag_for_reconciliation(
      self, order_id: str, event: PaymentWebhookEvent
  ) -> None:
    """Records a paid order whose stock could not be taken."""
    try:
      order = await db.get_order(self.session, order_id, refresh=True)
      self._mark_paid(order, event)
      order.needs_reconciliation = True
      order.failure_reason = "Stock unavailable after payment"
      await self._finish(event, "stock_conflict", order)
    except Exception:
      await self.session.rollback()
      raise

  async def _handle_failed(
      self, order: db.Order, event: PaymentWebhookEvent
  ) -> WebhookResult:
    if order.status != OrderStatus.PENDING_PAYMENT.value:
      logger.info(
          "Ignoring %s for order %s in status %s",
          event.type,
          order.order_number,
          order.status,
      )
      await self._finish(event, "ignored_terminal", order)
      return WebhookResult(
          processed=False, order_id=order.id, status=order.status
      )
    for item in order.items:
      await stock_guard.release_stock(self.session, item)
    order.status = OrderStatus.PAYMENT_FAILED.value
    order.payment_status = PaymentStatus.FAILED.value
    order.failure_reason = event.failure_reason
    order.updated_at = db.now_iso()
    await self._finish(event, "payment_failed", order)
    logger.info(
        "Payment failed for order %s: %s",
        order.order_number,
        event.failure_reason,
    )
    return WebhookResult(processed=True, order_id=order.id, status=order.status)

  async def _handle_canceled(
      self, order: db.Order, event: PaymentWebhookEvent
  ) -> WebhookResult:
    if order.status != OrderStatus.PENDING_PAYMENT.value:
      logger.info(
          "Ignoring %s for order %s in status %s",
          event.type,
          order.order_number,
          order.status,
      )
      await self._finish(event, "ignored_terminal", order)
      return WebhookResult(
          processed=False, order_id=order.id, status=order.status
      )
    for item in order.items:
      await stock_guard.release_stock(self.session, item)
    now = db.now_iso()
    order.status = OrderStatus.CANCELLED.value
    order.payment_status = PaymentStatus.FAILED.value
    order.cancelled_at = now
    order.updated_at = now
    await self._finish(event, "cancelled", order)
    logger.info("Order %s cancelled by payment provider", order.order_number)
    return WebhookResult(processed=True, order_id=order.id, status=order.status)

  async def _notify_order_paid(self, order: db.Order) -> None:
    """Notifies the configured downstream webhook that an order was paid."""
    if not self.order_events_webhook_url:
      return

    payload = {
        "event_type": "order_paid",
        "order": to_order_response(order).model_dump(mode="json"),
    }
    try:
      async with httpx.AsyncClient() as client:
        await client.post(
            self.order_events_webhook_url, json=payload, timeout=5.0
        )
    except Exception as e:  # pylint: disable=broad-exception-caught
      logger.error(
          "Failed to notify order webhook at %s: %s",
          self.order_events_webhook_url,
          e,
      )
