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

"""Money and quantity resolution.

All amounts are integers in minor currency units. Nothing in this module does
I/O: callers pass catalog rows they have already loaded.
"""

import dataclasses
import logging
from typing import Iterable, Optional, Sequence

import db

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class OrderTotals:
  subtotal_minor: int
  shipping_total_minor: int
  discount_total_minor: int
  grand_total_minor: int


def resolve_override(base: int, override: Optional[int]) -> int:
  """Returns the override when present, else the base value.

  An override of 0 is present: for quantity it means the variant is sold out,
  for price that it is free. Only None falls back to the base.
  """
  if override is not None:
    return override
  return base


def effective_price(
    listing: db.Listing, variant: Optional[db.ListingVariant] = None
) -> int:
  """Unit price of a listing, or of one of its variants."""
  override = variant.price_minor_override if variant is not None else None
  return max(0, resolve_override(listing.base_price_minor or 0, override))


def effective_stock(
    listing: db.Listing, variant: Optional[db.ListingVariant] = None
) -> int:
  """Units currently available for a listing, or one of its variants."""
  override = variant.quantity_override if variant is not None else None
  return max(0, resolve_override(listing.base_quantity or 0, override))


def line_total(unit_price_minor: int, quantity: int) -> int:
  return unit_price_minor * quantity


def discount_total(
    subtotal_minor: int, discounts: Iterable[db.Discount]
) -> int:
  """Sums the amounts of the given discounts against a subtotal."""
  total = 0
  for discount in discounts:
    if discount.type == "percentage":
      total += subtotal_minor * discount.value // 100
    elif discount.type == "fixed_amount":
      total += discount.value
    else:
      logger.warning(
          "Ignoring discount %s with unknown type %s",
          discount.code,
          discount.type,
      )
  return total


def compute_totals(
    line_totals: Sequence[int], shipping_minor: int, discount_minor: int
) -> OrderTotals:
  """Builds order totals. The grand total is clamped at zero."""
  subtotal = sum(line_totals)
  return OrderTotals(
      subtotal_minor=subtotal,
      shipping_total_minor=shipping_minor,
      discount_total_minor=discount_minor,
      grand_total_minor=max(0, subtotal + shipping_minor - discount_minor),
  )
