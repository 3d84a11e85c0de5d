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

"""Tests for the cart service."""

import asyncio

from absl.testing import absltest
from exceptions import ForbiddenError
from exceptions import InsufficientStockError
from exceptions import ListingNotPurchasableError
from exceptions import PersonalizationInvalidError
from exceptions import ResourceNotFoundError
from exceptions import SelfPurchaseError
from models import AddCartItemRequest
from models import UpdateCartItemRequest
from services.cart_service import CartService
import testdata
from testdata import BUYER
from testdata import OTHER_BUYER


class CartServiceTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.database = testdata.TestDatabase()

    async def init() -> None:
      await self.database.create_schema()
      async with self.database.session_factory() as session:
        await testdata.seed(session)

    asyncio.run(init())

  def tearDown(self) -> None:
    asyncio.run(self.database.dispose())
    self.database.cleanup()
    super().tearDown()

  def _call(self, method: str, *args):
    async def run():
      async with self.database.session_factory() as session:
        return await getattr(CartService(session), method)(*args)

    return asyncio.run(run())

  def _add(self, buyer=BUYER, **kwargs):
    return self._call("add_item", buyer, AddCartItemRequest(**kwargs))

  def test_empty_cart_is_created_lazily(self) -> None:
    cart = self._call("get_cart", BUYER)
    self.assertEmpty(cart.items)
    self.assertEqual(cart.subtotal_minor, 0)
    self.assertEqual(self._call("get_cart", BUYER).id, cart.id)

  def test_add_item_prices_from_catalog(self) -> None:
    cart = self._add(listing_id="lst_scarf", variant_id="var_red", quantity=2)
    line = cart.items[0]
    self.assertEqual(line.variant_id, "var_red")
    self.assertEqual(line.unit_price_minor, 1500)
    self.assertEqual(line.line_total_minor, 3000)
    self.assertEqual(line.available_quantity, 3)
    self.assertEqual(cart.subtotal_minor, 3000)
    self.assertEqual(cart.currency, "TRY")

  def test_adding_again_merges_quantity(self) -> None:
    self._add(listing_id="lst_scarf", quantity=2)
    cart = self._add(listing_id="lst_scarf", quantity=2)
    self.assertLen(cart.items, 1)
    self.assertEqual(cart.items[0].quantity, 4)

    with self.assertRaises(InsufficientStockError):
      self._add(listing_id="lst_scarf", quantity=2)
    self.assertEqual(self._call("get_cart", BUYER).items[0].quantity, 4)

  def test_lines_drawing_on_listing_stock_are_totalled(self) -> None:
    self._add(listing_id="lst_scarf", quantity=3)

    with self.assertRaises(InsufficientStockError) as cm:
      self._add(listing_id="lst_scarf", variant_id="var_green", quantity=3)
    self.assertEqual(cm.exception.details[0]["requested"], 6)
    self.assertEqual(cm.exception.details[0]["available"], 5)
    self.assertLen(self._call("get_cart", BUYER).items, 1)

    cart = self._add(listing_id="lst_scarf", variant_id="var_green", quantity=2)
    self.assertLen(cart.items, 2)
    # A variant with its own quantity does not draw on the listing.
    cart = self._add(listing_id="lst_scarf", variant_id="var_red", quantity=3)
    self.assertLen(cart.items, 3)

  def test_update_counts_other_lines_on_the_same_row(self) -> None:
    base_id = self._add(listing_id="lst_scarf", quantity=2).items[0].id
    self._add(listing_id="lst_scarf", variant_id="var_green", quantity=2)

    with self.assertRaises(InsufficientStockError) as cm:
      self._call(
          "update_item", BUYER, base_id, UpdateCartItemRequest(quantity=4)
      )
    self.assertEqual(cm.exception.details[0]["requested"], 6)

    cart = self._call(
        "update_item", BUYER, base_id, UpdateCartItemRequest(quantity=3)
    )
    quantities = {line.id: line.quantity for line in cart.items}
    self.assertEqual(quantities[base_id], 3)

  def test_rejects_unpurchasable_listings(self) -> None:
    with self.assertRaises(SelfPurchaseError):
      self._add(listing_id="lst_own")
    with self.assertRaises(ListingNotPurchasableError):
      self._add(listing_id="lst_draft")
    with self.assertRaises(ResourceNotFoundError):
      self._add(listing_id="lst_missing")
    with self.assertRaises(ResourceNotFoundError):
      self._add(listing_id="lst_mug", variant_id="var_red")
    self.assertEmpty(self._call("get_cart", BUYER).items)

  def test_sold_out_variant(self) -> None:
    with self.assertRaises(InsufficientStockError) as cm:
      self._add(listing_id="lst_scarf", variant_id="var_blue")
    self.assertEqual(cm.exception.details[0]["available"], 0)

  def test_personalization_is_validated(self) -> None:
    with self.assertRaises(PersonalizationInvalidError):
      self._add(listing_id="lst_mug")
    cart = self._add(
        listing_id="lst_mug",
        personalization={"pf_name": " Ada ", "unknown": "x"},
    )
    self.assertEqual(cart.items[0].personalization, {"pf_name": "Ada"})

  def test_update_and_remove(self) -> None:
    line_id = self._add(listing_id="lst_scarf").items[0].id

    cart = self._call(
        "update_item", BUYER, line_id, UpdateCartItemRequest(quantity=5)
    )
    self.assertEqual(cart.items[0].quantity, 5)

    with self.assertRaises(InsufficientStockError):
      self._call(
          "update_item", BUYER, line_id, UpdateCartItemRequest(quantity=6)
      )

    cart = self._call("remove_item", BUYER, line_id)
    self.assertEmpty(cart.items)

  def test_other_buyers_line(self) -> None:
    line_id = self._add(listing_id="lst_scarf").items[0].id
    self._call("get_cart", OTHER_BUYER)

    with self.assertRaises(ForbiddenError):
      self._call("remove_item", OTHER_BUYER, line_id)
    with self.assertRaises(ResourceNotFoundError):
      self._call("remove_item", BUYER, "missing")


if __name__ == "__main__":
  absltest.main()
