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

"""Request, response and snapshot models for the checkout engine.

The order item snapshot is the record of truth for disputes and refunds. Each
of its four sections is required-but-nullable: `None` means the section does
not apply to the item, while a stored document without the key fails
validation, so missing data is never mistaken for an empty section.
"""

from typing import Any, Dict, List, Optional

from enums import ListingType
from enums import OrderStatus
from enums import PaymentStatus
from enums import ProcessingMode
from enums import ReturnPolicyType
from enums import ViolationCode
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator


class ShippingAddress(BaseModel):
  """Destination for the physical items of an order."""

  full_name: str = Field(..., min_length=1)
  line1: str = Field(..., min_length=1)
  line2: Optional[str] = None
  city: str = Field(..., min_length=1)
  district: Optional[str] = None
  postal_code: Optional[str] = None
  country: str = Field("TR", min_length=2, max_length=2)
  phone: Optional[str] = None

  @field_validator("country")
  @classmethod
  def _upper_country(cls, value: str) -> str:
    return value.upper()


class CheckoutRequest(BaseModel):
  """Body of `POST /checkout`.

  Anything else the client sends (prices, totals, line items) is ignored;
  the engine prices the buyer's cart from the catalog.
  """

  shipping_address: ShippingAddress
  discount_codes: List[str] = Field(default_factory=list)


class AddCartItemRequest(BaseModel):
  listing_id: str
  variant_id: Optional[str] = None
  quantity: int = Field(1, ge=1)
  personalization: Optional[Dict[str, str]] = None


class UpdateCartItemRequest(BaseModel):
  quantity: int = Field(..., ge=1)


class CartLineResponse(BaseModel):
  id: str
  listing_id: str
  variant_id: Optional[str] = None
  title: str
  quantity: int
  unit_price_minor: int
  line_total_minor: int
  currency: str
  available_quantity: int
  personalization: Optional[Dict[str, str]] = None


class CartResponse(BaseModel):
  id: str
  items: List[CartLineResponse]
  subtotal_minor: int
  currency: Optional[str] = None


class LineViolation(BaseModel):
  """A business-rule failure for one cart line, reported as a value."""

  model_config = ConfigDict(frozen=True)

  code: ViolationCode
  message: str
  cart_item_id: Optional[str] = None
  listing_id: Optional[str] = None
  variant_id: Optional[str] = None
  requested: Optional[int] = None
  available: Optional[int] = None


class ProcessingTimeSnapshot(BaseModel):
  model_config = ConfigDict(frozen=True)

  mode: ProcessingMode
  min_days: int
  max_days: int


class ReturnPolicySnapshot(BaseModel):
  model_config = ConfigDict(frozen=True)

  return_policy_type: ReturnPolicyType
  return_window_days: Optional[int] = None


class OrderItemSnapshot(BaseModel):
  """Catalog state frozen onto an order item at purchase time."""

  model_config = ConfigDict(frozen=True)

  title: str
  listing_type: ListingType
  # Ordered group -> value pairs, e.g. {"Size": "M", "Color": "Red"}.
  variant_selections: Optional[Dict[str, str]]
  # Field label -> answer. {} when the listing asked but nothing was given.
  personalization: Optional[Dict[str, str]]
  processing_time: Optional[ProcessingTimeSnapshot]
  return_policy: Optional[ReturnPolicySnapshot]


class OrderItemResponse(BaseModel):
  id: str
  listing_id: str
  variant_id: Optional[str] = None
  shop_id: Optional[str] = None
  quantity: int
  unit_price_minor: int
  total_price_minor: int
  currency: str
  tax_rate_bps: int
  estimated_ship_by_date: Optional[str] = None
  snapshot: OrderItemSnapshot


class OrderResponse(BaseModel):
  id: str
  order_number: str
  status: OrderStatus
  payment_status: PaymentStatus
  subtotal_minor: int
  shipping_total_minor: int
  discount_total_minor: int
  grand_total_minor: int
  currency: str
  shipping_address: Optional[Dict[str, Any]] = None
  discount_codes: List[str] = Field(default_factory=list)
  needs_reconciliation: bool = False
  created_at: str
  updated_at: str
  paid_at: Optional[str] = None
  cancelled_at: Optional[str] = None
  items: List[OrderItemResponse]


class OrderListResponse(BaseModel):
  orders: List[OrderResponse]
  total: int
  page: int
  page_size: int


class PaymentIntent(BaseModel):
  """What the provider returned for an order's payment."""

  id: str
  status: str
  amount_minor: int
  currency: str
  redirect_url: Optional[str] = None
  client_secret: Optional[str] = None


class CheckoutResponse(BaseModel):
  order: OrderResponse
  payment: Optional[PaymentIntent] = None
  replayed: bool = False


class PaymentWebhookEvent(BaseModel):
  """A verified event from the payment provider.

  `type` is kept as a plain string so that event types this engine does not
  know are still accepted.
  """

  id: str
  type: str
  order_id: Optional[str] = None
  order_number: Optional[str] = None
  payment_intent_id: Optional[str] = None
  amount_minor: Optional[int] = None
  currency: Optional[str] = None
  failure_reason: Optional[str] = None


class WebhookResult(BaseModel):
  received: bool = True
  processed: bool
  order_id: Optional[str] = None
  status: Optional[OrderStatus] = None
  detail: Optional[str] = None
