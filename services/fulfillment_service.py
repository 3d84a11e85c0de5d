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

"""Fulfillment service for calculating shipping costs.

This module encapsulates the logic for pricing delivery of an order's physical
items based on each listing's shipping profile and the destination country.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import db
from enums import ListingType

logger = logging.getLogger(__name__)

DOMESTIC = "domestic"
INTERNATIONAL = "international"


class FulfillmentService:
  """Service for handling fulfillment logic."""

  def __init__(self, home_country: str = "TR"):
    self.home_country = home_country.upper()

  def _rule_for(
      self, profile: Optional[db.ShippingProfile], country: str
  ) -> Optional[Dict[str, Any]]:
    if profile is None or not profile.rules:
      return None
    rules = profile.rules
    if country.upper() != self.home_country and rules.get(INTERNATIONAL):
      return rules[INTERNATIONAL]
    return rules.get(DOMESTIC)

  def line_shipping(
      self, listing: db.Listing, quantity: int, country: str
  ) -> int:
    """Shipping for one line: base price plus the additional-item price.

    Args:
      listing: The listing, loaded with its shipping profile.
      quantity: Units on the line.
      country: ISO country code of the destination.

    Returns:
      The shipping cost in minor units. Digital listings and listings without
      a shipping profile ship for free.
    """
    if listing.listing_type == ListingType.DIGITAL.value:
      return 0
    rule = self._rule_for(listing.shipping_profile, country)
    if rule is None:
      return 0
    base = int(rule.get("base_price_minor", 0))
    additional = int(rule.get("additional_item_price_minor", 0))
    return base + additional * max(0, quantity - 1)

  def calculate_shipping(
      self, lines: Iterable[Tuple[db.Listing, int]], country: str
  ) -> int:
    """Calculates the shipping total for (listing, quantity) lines."""
    total = 0
    for listing, quantity in lines:
      total += self.line_shipping(listing, quantity, country)
    logger.debug("Shipping to %s totals %d", country, total)
    return total
