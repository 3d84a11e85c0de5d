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

"""Builds the immutable snapshot stored on every order item."""

import datetime
from typing import Dict, Optional

import db
from enums import ReturnPolicyType
from models import OrderItemSnapshot
from models import ProcessingTimeSnapshot
from models import ReturnPolicySnapshot
from services import personalization

DEFAULT_RETURN_POLICY = ReturnPolicyType.RETURNS_ACCEPTED
DEFAULT_RETURN_WINDOW_DAYS = 14


def _variant_selections(
    variant: Optional[db.ListingVariant],
) -> Optional[Dict[str, str]]:
  if variant is None:
    return None
  return {s["group"]: s["value"] for s in (variant.selections or [])}


def _personalization(
    listing: db.Listing, answers: Optional[Dict[str, str]]
) -> Optional[Dict[str, str]]:
  fields = listing.personalization_fields or []
  if not fields:
    return None
  sanitized = personalization.sanitize(fields, answers)
  # Keyed by label so the answer stays readable if the field is later removed.
  return {f.label: sanitized[f.id] for f in fields if f.id in sanitized}


def _processing_time(listing: db.Listing) -> Optional[ProcessingTimeSnapshot]:
  profile = listing.processing_profile
  if profile is None:
    return None
  return ProcessingTimeSnapshot(
      mode=profile.mode, min_days=profile.min_days, max_days=profile.max_days
  )


def _return_policy(listing: db.Listing) -> ReturnPolicySnapshot:
  shop = listing.shop
  policy_type = listing.return_policy_type or (
      shop.return_policy_type if shop else None
  )
  window = listing.return_window_days
  if window is None and shop is not None:
    window = shop.return_window_days
  policy_type = policy_type or DEFAULT_RETURN_POLICY.value
  if window is None and policy_type != ReturnPolicyType.NO_RETURNS.value:
    window = DEFAULT_RETURN_WINDOW_DAYS
  return ReturnPolicySnapshot(
      return_policy_type=policy_type, return_window_days=window
  )


def build_snapshot(
    listing: db.Listing,
    variant: Optional[db.ListingVariant] = None,
    answers: Optional[Dict[str, str]] = None,
) -> OrderItemSnapshot:
  """Freezes the catalog state of one cart line.

  Args:
    listing: The listing, loaded with its shop and profiles.
    variant: The selected variant, if any.
    answers: The buyer's personalization answers keyed by field id.

  Returns:
    The snapshot. Sections that do not apply are None, never omitted.
  """
  return OrderItemSnapshot(
      title=listing.title,
      listing_type=listing.listing_type,
      variant_selections=_variant_selections(variant),
      personalization=_personalization(listing, answers),
      processing_time=_processing_time(listing),
      return_policy=_return_policy(listing),
  )


def estimated_ship_by(
    snapshot: OrderItemSnapshot,
    now: Optional[datetime.datetime] = None,
) -> Optional[str]:
  """Returns now + the processing window's max days, as an ISO date."""
  if snapshot.processing_time is None:
    return None
  now = now or datetime.datetime.now(datetime.timezone.utc)
  ship_by = now + datetime.timedelta(days=snapshot.processing_time.max_days)
  return ship_by.date().isoformat()
