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

"""Database initialization script for the checkout engine.

This script imports catalog data (shops, profiles, listings, variants,
personalization fields) and discounts from CSV files into the configured
SQLite database. It clears the existing catalog tables before populating them
with the new dataset. Carts and orders are left untouched.

Usage:
  uv run import_csv.py --db_path=... --data_dir=...
"""

import asyncio
import csv
import json
import logging
import os
from typing import Dict, List, Optional
from absl import app as absl_app
from absl import flags
import db
from db import Discount
from db import Listing
from db import ListingVariant
from db import PersonalizationField
from db import ProcessingProfile
from db import ShippingProfile
from db import Shop
from sqlalchemy import delete

FLAGS = flags.FLAGS

try:
  flags.DEFINE_string("db_path", "checkout.db", "Path to the SQLite database")
except flags.DuplicateFlagError:
  pass
flags.DEFINE_string(
    "data_dir",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
    "Directory containing shops.csv, listings.csv, variants.csv, ...",
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def read_rows(data_dir: str, name: str) -> List[Dict[str, str]]:
  """Returns the rows of a CSV file, or no rows if the file is absent."""
  path = os.path.join(data_dir, name)
  if not os.path.exists(path):
    logger.info("No %s found, skipping.", name)
    return []
  with open(path, "r", encoding="utf-8") as f:
    return list(csv.DictReader(f))


def _opt_int(value: Optional[str]) -> Optional[int]:
  # An empty cell is "no value"; "0" is a real zero.
  if value is None or value.strip() == "":
    return None
  return int(value)


def _opt_str(value: Optional[str]) -> Optional[str]:
  return value.strip() if value and value.strip() else None


def _bool(value: Optional[str]) -> bool:
  return (value or "").strip().lower() in ("1", "true", "yes")


def parse_catalog(data_dir: str) -> List[db.Base]:
  """Builds catalog rows from the CSV files in a directory."""
  rows: List[db.Base] = []
  for row in read_rows(data_dir, "shops.csv"):
    rows.append(
        Shop(
            id=row["id"],
            owner_user_id=row["owner_user_id"],
            name=row["name"],
            return_policy_type=_opt_str(row.get("return_policy_type")),
            return_window_days=_opt_int(row.get("return_window_days")),
        )
    )
  for row in read_rows(data_dir, "processing_profiles.csv"):
    rows.append(
        ProcessingProfile(
            id=row["id"],
            shop_id=row["shop_id"],
            mode=row["mode"],
            min_days=int(row["min_days"]),
            max_days=int(row["max_days"]),
        )
    )
  for row in read_rows(data_dir, "shipping_profiles.csv"):
    rows.append(
        ShippingProfile(
            id=row["id"], shop_id=row["shop_id"], rules=json.loads(row["rules"])
        )
    )
  for row in read_rows(data_dir, "listings.csv"):
    rows.append(
        Listing(
            id=row["id"],
            shop_id=row["shop_id"],
            seller_user_id=row["seller_user_id"],
            slug=row["slug"],
            title=row["title"],
            listing_type=row.get("listing_type") or "PHYSICAL",
            status=row["status"],
            compliance_status=row.get("compliance_status") or "OK",
            is_private=_bool(row.get("is_private")),
            private_access_user_ids=(
                json.loads(row["private_access_user_ids"])
                if _opt_str(row.get("private_access_user_ids"))
                else None
            ),
            base_price_minor=int(row["base_price_minor"]),
            base_quantity=int(row["base_quantity"]),
            currency=row.get("currency") or "TRY",
            processing_profile_id=_opt_str(row.get("processing_profile_id")),
            shipping_profile_id=_opt_str(row.get("shipping_profile_id")),
            return_policy_type=_opt_str(row.get("return_policy_type")),
            return_window_days=_opt_int(row.get("return_window_days")),
            updated_at=db.now_iso(),
        )
    )
  for row in read_rows(data_dir, "variants.csv"):
    rows.append(
        ListingVariant(
            id=row["id"],
            listing_id=row["listing_id"],
            is_active=not row.get("is_active") or _bool(row["is_active"]),
            selections=json.loads(row["selections"] or "[]"),
            price_minor_override=_opt_int(row.get("price_minor_override")),
            quantity_override=_opt_int(row.get("quantity_override")),
        )
    )
  for row in read_rows(data_dir, "personalization_fields.csv"):
    rows.append(
        PersonalizationField(
            id=row["id"],
            listing_id=row["listing_id"],
            label=row["label"],
            is_required=_bool(row.get("is_required")),
            min_length=_opt_int(row.get("min_length")),
            max_length=_opt_int(row.get("max_length")),
            position=_opt_int(row.get("position")) or 0,
        )
    )
  for row in read_rows(data_dir, "discounts.csv"):
    rows.append(
        Discount(
            code=row["code"],
            type=row["type"],
            value=int(row["value"]),
            description=row["description"],
        )
    )
  return rows


async def import_csv_data() -> None:
  """Reads CSV files and populates the database."""
  # Ensure tables exist
  await db.manager.init_db(FLAGS.db_path)

  try:
    async with db.manager.session_factory() as session:
      for model in (
          PersonalizationField,
          ListingVariant,
          Listing,
          ProcessingProfile,
          ShippingProfile,
          Shop,
          Discount,
      ):
        logger.info("Clearing existing %s...", model.__tablename__)
        await session.execute(delete(model))

      logger.info("Importing catalog from %s...", FLAGS.data_dir)
      rows = parse_catalog(FLAGS.data_dir)
      session.add_all(rows)
      await session.commit()
      logger.info("Imported %d rows.", len(rows))

    logger.info("Database populated from CSVs.")
  finally:
    await db.manager.close()


def main(argv) -> None:
  """Main entry point for the CSV import script."""
  del argv
  asyncio.run(import_csv_data())


if __name__ == "__main__":
  absl_app.run(main)
