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

"""Tests for order item snapshots."""

import datetime

from absl.testing import absltest
import db
from enums import ReturnPolicyType
from models import OrderItemSnapshot
import pydantic
from services import snapshot


def _listing(**kwargs) -> db.Listing:
  values = {
      "id": "lst",
      "title": "Scarf",
      "listing_type": "PHYSICAL",
      "shop": db.Shop(id="shop", owner_user_id="seller"),
      "personalization_fields": [],
  }
  values.update(kwargs)
  return db.Listing(**values)


class BuildSnapshotTest(absltest.TestCase):

  def test_sections_that_do_not_apply_are_null(self) -> None:
    snap = snapshot.build_snapshot(_listing())
    dumped = snap.model_dump(mode="json")
    self.assertIn("variant_selections", dumped)
    self.assertIsNone(dumped["variant_selections"])
    self.assertIsNone(dumped["personalization"])
    self.assertIsNone(dumped["processing_time"])
    self.assertEqual(dumped["title"], "Scarf")

  def test_variant_selections_keep_group_order(self) -> None:
    variant = db.ListingVariant(
        id="v",
        listing_id="lst",
        selections=[
            {"group": "Size", "value": "M"},
            {"group": "Color", "value": "Red"},
        ],
    )
    snap = snapshot.build_snapshot(_listing(), variant)
    self.assertEqual(
        list(snap.variant_selections.items()),
        [("Size", "M"), ("Color", "Red")],
    )

  def test_personalization_is_keyed_by_label(self) -> None:
    fields = [
        db.PersonalizationField(id="pf_1", label="Name", position=0),
        db.PersonalizationField(id="pf_2", label="Note", position=1),
    ]
    snap = snapshot.build_snapshot(
        _listing(personalization_fields=fields),
        answers={"pf_1": "  Deniz ", "pf_9": "stray"},
    )
    self.assertEqual(snap.personalization, {"Name": "Deniz"})

  def test_unanswered_personalization_is_empty_not_null(self) -> None:
    fields = [db.PersonalizationField(id="pf_1", label="Note", position=0)]
    snap = snapshot.build_snapshot(_listing(personalization_fields=fields))
    self.assertEqual(snap.personalization, {})

  def test_return_policy_defaults(self) -> None:
    snap = snapshot.build_snapshot(_listing())
    self.assertEqual(
        snap.return_policy.return_policy_type,
        ReturnPolicyType.RETURNS_ACCEPTED,
    )
    self.assertEqual(snap.return_policy.return_window_days, 14)

  def test_return_policy_falls_back_to_shop(self) -> None:
    shop = db.Shop(
        id="shop",
        owner_user_id="seller",
        return_policy_type="EXCHANGES_ONLY",
        return_window_days=30,
    )
    snap = snapshot.build_snapshot(_listing(shop=shop))
    self.assertEqual(
        snap.return_policy.return_policy_type, ReturnPolicyType.EXCHANGES_ONLY
    )
    self.assertEqual(snap.return_policy.return_window_days, 30)

  def test_listing_policy_overrides_shop(self) -> None:
    shop = db.Shop(
        id="shop",
        owner_user_id="seller",
        return_policy_type="EXCHANGES_ONLY",
        return_window_days=30,
    )
    snap = snapshot.build_snapshot(
        _listing(shop=shop, return_policy_type="NO_RETURNS")
    )
    self.assertEqual(
        snap.return_policy.return_policy_type, ReturnPolicyType.NO_RETURNS
    )
    # The listing sets no window of its own, so the shop's still applies.
    self.assertEqual(snap.return_policy.return_window_days, 30)

  def test_no_returns_without_window(self) -> None:
    snap = snapshot.build_snapshot(_listing(return_policy_type="NO_RETURNS"))
    self.assertIsNone(snap.return_policy.return_window_days)

  def test_processing_time_and_ship_by(self) -> None:
    profile = db.ProcessingProfile(
        id="pp", mode="MADE_TO_ORDER", min_days=3, max_days=5
    )
    snap = snapshot.build_snapshot(_listing(processing_profile=profile))
    self.assertEqual(snap.processing_time.max_days, 5)
    now = datetime.datetime(2026, 3, 30, 12, tzinfo=datetime.timezone.utc)
    self.assertEqual(snapshot.estimated_ship_by(snap, now), "2026-04-04")

  def test_no_ship_by_without_processing_time(self) -> None:
    snap = snapshot.build_snapshot(_listing())
    self.assertIsNone(snapshot.estimated_ship_by(snap))


class StoredSnapshotTest(absltest.TestCase):

  def test_missing_section_fails_validation(self) -> None:
    stored = snapshot.build_snapshot(_listing()).model_dump(mode="json")
    del stored["processing_time"]
    with self.assertRaises(pydantic.ValidationError):
      OrderItemSnapshot.model_validate(stored)

  def test_snapshot_is_immutable(self) -> None:
    snap = snapshot.build_snapshot(_listing())
    with self.assertRaises(pydantic.ValidationError):
      snap.title = "Changed"


if __name__ == "__main__":
  absltest.main()
