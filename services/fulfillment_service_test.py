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

"""Tests for shipping calculation."""

from absl.testing import absltest
import db
from services.fulfillment_service import FulfillmentService

RULES = {
    "domestic": {"base_price_minor": 500, "additional_item_price_minor": 100},
    "international": {
        "base_price_minor": 2000,
        "additional_item_price_minor": 500,
    },
}


def _listing(listing_type: str = "PHYSICAL", rules=None) -> db.Listing:
  profile = db.ShippingProfile(id="sp", rules=rules) if rules else None
  return db.Listing(
      id="lst", listing_type=listing_type, shipping_profile=profile
  )


class FulfillmentServiceTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.service = FulfillmentService(home_country="TR")

  def test_domestic_line(self) -> None:
    self.assertEqual(
        self.service.line_shipping(_listing(rules=RULES), 3, "tr"), 700
    )

  def test_international_line(self) -> None:
    self.assertEqual(
        self.service.line_shipping(_listing(rules=RULES), 2, "DE"), 2500
    )

  def test_international_falls_back_to_domestic_rule(self) -> None:
    rules = {"domestic": RULES["domestic"]}
    self.assertEqual(
        self.service.line_shipping(_listing(rules=rules), 1, "DE"), 500
    )

  def test_digital_and_unprofiled_listings_ship_free(self) -> None:
    self.assertEqual(
        self.service.line_shipping(_listing("DIGITAL", RULES), 4, "TR"), 0
    )
    self.assertEqual(self.service.line_shipping(_listing(), 4, "TR"), 0)

  def test_calculate_shipping_sums_lines(self) -> None:
    lines = [(_listing(rules=RULES), 1), (_listing(rules=RULES), 2)]
    self.assertEqual(self.service.calculate_shipping(lines, "TR"), 1100)


if __name__ == "__main__":
  absltest.main()
