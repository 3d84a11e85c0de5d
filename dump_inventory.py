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

"""Utility script to dump inventory data.

This script reads listing and variant stock from the configured SQLite
database and outputs the effective stock of every sellable unit to standard
output in CSV format. Variants without a quantity override report the
listing's base quantity, marked as inherited.

Usage:
  uv run dump_inventory.py --db_path=...
"""

import asyncio
import csv
import sys
from absl import app as absl_app
from absl import flags
import db
from db import Listing
from services import pricing
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("db_path", None, "Path to the SQLite database")


async def dump_inventory():
  """Queries the database and prints current inventory levels."""
  if not FLAGS.db_path:
    print("Error: --db_path is required.")
    sys.exit(1)

  engine = db.create_engine(FLAGS.db_path)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  async with session_factory() as session:
    result = await session.execute(select(Listing).order_by(Listing.id))
    listings = result.scalars().all()

    writer = csv.writer(sys.stdout)
    writer.writerow(
        ["listing_id", "variant_id", "status", "quantity", "inherited"]
    )
    for listing in listings:
      writer.writerow(
          [listing.id, "", listing.status, listing.base_quantity, False]
      )
      for variant in listing.variants:
        writer.writerow([
            listing.id,
            variant.id,
            listing.status if variant.is_active else "INACTIVE",
            pricing.effective_stock(listing, variant),
            variant.quantity_override is None,
        ])

  await engine.dispose()


def main(argv):
  """Main entry point for the inventory dump script."""
  del argv
  asyncio.run(dump_inventory())


if __name__ == "__main__":
  absl_app.run(main)
