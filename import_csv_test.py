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

"""Tests for the CSV catalog importer."""

import os

from absl.testing import absltest
import db
import import_csv

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")


class ParseCatalogTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.rows = import_csv.parse_catalog(DATA_DIR)

  def _by_id(self, model):
    return {row.id: row for row in self.rows if isinstance(row, model)}

  def test_empty_cells_are_not_zero(self) -> None:
    variants = self._by_id(db.ListingVariant)
    self.assertIsNone(variants["var_scarf_green_m"].quantity_override)
    self.assertIsNone(variants["var_scarf_green_m"].price_minor_override)
    self.assertEqual(variants["var_scarf_blue_m"].quantity_override, 0)
    self.assertFalse(variants["var_scarf_old"].is_active)

  def test_variant_selections_keep_order(self) -> None:
    red = self._by_id(db.ListingVariant)["var_scarf_red_l"]
    self.assertEqual(
        [s["group"] for s in red.selections], ["Color", "Size"]
    )

  def test_listings(self) -> None:
    listings = self._by_id(db.Listing)
    self.assertEqual(
        listings["lst_commission"].private_access_user_ids, ["buyer_deniz"]
    )
    self.assertTrue(listings["lst_commission"].is_private)
    self.assertIsNone(listings["lst_pattern"].shipping_profile_id)
    self.assertEqual(listings["lst_mug"].return_window_days, 7)

  def test_shipping_rules_are_parsed(self) -> None:
    profile = self._by_id(db.ShippingProfile)["sp_atolye"]
    self.assertEqual(profile.rules["international"]["base_price_minor"], 2500)

  def test_discounts(self) -> None:
    codes = {
        row.code: row.value for row in self.rows if isinstance(row, db.Discount)
    }
    self.assertEqual(codes, {"HOSGELDIN10": 10, "INDIRIM200": 200})

  def test_missing_files_are_skipped(self) -> None:
    self.assertEmpty(
        import_csv.parse_catalog(self.create_tempdir().full_path)
    )


if __name__ == "__main__":
  absltest.main()
