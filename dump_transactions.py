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

"""Utility script to dump order data.

This script reads from the configured SQLite database and prints a summary of
all stored orders, including their status, frozen totals and line items. Orders
flagged for manual stock reconciliation are marked. It is useful for debugging
and verifying the state of the server.

Usage:
  uv run dump_transactions.py --db_path=... [--only_reconciliation]
"""

import asyncio
import sys
from absl import app as absl_app
from absl import flags
import db
from db import Order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("db_path", None, "Path to the SQLite database")
flags.DEFINE_bool(
    "only_reconciliation",
    False,
    "Only show paid orders whose stock could not be taken",
)


def _money(amount_minor: int, currency: str) -> str:
  return f"{amount_minor / 100.0:.2f} {currency}"


async def dump_transactions():
  """Queries the database and prints all orders."""
  if not FLAGS.db_path:
    print("Error: --db_path is required.")
    sys.exit(1)

  engine = db.create_engine(FLAGS.db_path)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  async with session_factory() as session:
    stmt = select(Order).order_by(Order.created_at)
    if FLAGS.only_reconciliation:
      stmt = stmt.where(Order.needs_reconciliation.is_(True))
    result = await session.execute(stmt)
    orders = result.scalars().all()

    if not orders:
      print("No orders found.")
      await engine.dispose()
      return

    for order in orders:
      flag = " NEEDS RECONCILIATION" if order.needs_reconciliation else ""
      print(
          f"Order: {order.order_number} ({order.id})"
          f" [{order.status}/{order.payment_status}]{flag}"
      )
      print(
          f"  Buyer: {order.buyer_user_id}  Key: {order.idempotency_key}"
          f"  Provider ref: {order.payment_provider_ref or '-'}"
      )
      for item in order.items:
        title = (item.snapshot or {}).get("title", "Unknown Item")
        held = "held" if item.stock_held else "not held"
        print(
            f"  - {title} (listing {item.listing_id},"
            f" variant {item.variant_id or '-'}) x{item.quantity} @"
            f" {_money(item.unit_price_minor, item.currency)} ="
            f" {_money(item.total_price_minor, item.currency)} [stock {held}]"
        )
      print(
          f"  Subtotal {_money(order.subtotal_minor, order.currency)},"
          f" shipping {_money(order.shipping_total_minor, order.currency)},"
          f" discount {_money(order.discount_total_minor, order.currency)},"
          f" total {_money(order.grand_total_minor, order.currency)}"
      )
      print("-" * 60)

  await engine.dispose()


def main(argv):
  """Main entry point for the order dump script."""
  del argv
  asyncio.run(dump_transactions())


if __name__ == "__main__":
  absl_app.run(main)
