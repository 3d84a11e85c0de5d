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

"""Tests for price, stock and totals resolution."""

from absl.testing import absltest
import db
from services import pricing
from services import tax


def _listing(price: int = 1000, quantity: int = 5) -> db.Listing:
  return db.Listing(id="lst", base_price_minor=price, base_quantity=quantity)


class ResolveOverrideTest(absltest.TestCase):

  def test_none_falls_back_to_base(self) -> None:
    self.assertEqual(pricing.resolve_override(7, None), 7)

  def test_zero_is_a_real_override(self) -> None:
    self.assertEqual(pricing.resolve_override(7, 0), 0)

  def test_override_wins(self) -> None:
    self.assertEqual(pricing.resolve_override(7, 3), 3)


class EffectiveValuesTest(absltest.TestCase):

  def test_listing_without_variant(self) -> None:
    listing = _listing()
    self.assertEqual(pricing.effective_price(listing), 1000)
    self.assertEqual(pricing.effective_stock(listing), 5)

  def test_variant_without_overrides_inherits(self) -> None:
    variant = db.ListingVariant(id="v", listing_id="lst")
    self.assertEqual(pricing.effective_price(_listing(), variant), 1000)
    self.assertEqual(pricing.effective_stock(_listing(), variant), 5)

  def test_zero_quantity_override_is_sold_out(self) -> None:
    """A variant with 0 in stock must not inherit the listing's quantity."""
    variant = db.ListingVariant(id="v", listing_id="lst", quantity_override=0)
    self.assertEqual(pricing.effective_stock(_listing(quantity=5), variant), 0)

  def test_zero_price_override_is_free(self) -> None:
    variant = db.ListingVariant(
        id="v", listing_id="lst", price_minor_override=0
    )
    self.assertEqual(pricing.effective_price(_listing(price=1000), variant), 0)

  def test_negative_values_are_clamped(self) -> None:
    variant = db.ListingVariant(
        id="v", listing_id="lst", price_minor_override=-5, quantity_override=-2
    )
    self.assertEqual(pricing.effective_price(_listing(), variant), 0)
    self.assertEqual(pricing.effective_stock(_listing(), variant), 0)


class TotalsTest(absltest.TestCase):

  def test_example_order(self) -> None:
    """Two units at 1500 with 500 shipping and 200 off."""
    line = pricing.line_total(1500, 2)
    totals = pricing.compute_totals([line], 500, 200)
    self.assertEqual(totals.subtotal_minor, 3000)
    self.assertEqual(totals.shipping_total_minor, 500)
    self.assertEqual(totals.discount_total_minor, 200)
    self.assertEqual(totals.grand_total_minor, 3300)

  def test_grand_total_never_negative(self) -> None:
    totals = pricing.compute_totals([1000], 0, 5000)
    self.assertEqual(totals.grand_total_minor, 0)
    self.assertEqual(totals.discount_total_minor, 5000)

  def test_discount_types(self) -> None:
    discounts = [
        db.Discount(code="PCT10", type="percentage", value=10),
        db.Discount(code="FIXED200", type="fixed_amount", value=200),
        db.Discount(code="ODD", type="buy_one_get_one", value=1),
    ]
    # 10% of 3005 rounds down to 300.
    self.assertEqual(pricing.discount_total(3005, discounts), 500)

  def test_no_discounts(self) -> None:
    self.assertEqual(pricing.discount_total(3000, []), 0)


class TaxTest(absltest.TestCase):

  def test_default_rate_is_kdv(self) -> None:
    rate = tax.get_tax_rate("tr")
    self.assertEqual(rate.rate_bps, 2000)
    self.assertEqual(rate.name, "KDV")

  def test_unknown_country_uses_default(self) -> None:
    self.assertEqual(tax.get_tax_rate("DE").rate_bps, 2000)


if __name__ == "__main__":
  absltest.main()
