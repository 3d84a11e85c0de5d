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

"""Utility script to dump payment webhook deliveries from the database.

This script reads and displays the accepted payment webhook events and the
outcome the reconciler recorded for each. It can optionally look up and
display the current status of the associated order.

Usage:
  uv run dump_log.py --db_path=... [--show_order]
"""

import asyncio
import json
import sys
from absl import app as absl_app
from absl import flags
import db
from db import WebhookEvent
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("db_path", None, "Path to the SQLite database")
flags.DEFINE_bool("show_order", False, "Show correlated order details")


async def dump_logs():
  """Queries the database and prints webhook deliveries."""
  if not FLAGS.db_path:
    print("Error: --db_path is required.")
    sys.exit(1)

  engine = db.create_engine(FLAGS.db_path)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  async with session_factory() as session:
    print("=== PAYMENT WEBHOOK EVENTS ===")
    result = await session.execute(
        select(WebhookEvent).order_by(WebhookEvent.id)
    )
    events = result.scalars().all()

    if not events:
      print("No webhook events found.")

    for event in events:
      print(f"[{event.received_at}] {event.event_type} -> {event.outcome}")
      if event.payment_intent_id:
        print(f"  Payment intent: {event.payment_intent_id}")
      if event.order_ref:
        print(f"  Order: {event.order_ref}")

        if FLAGS.show_order:
          order = await db.find_order(
              session, order_id=event.order_ref, order_number=event.order_ref
          )
          if order:
            print(f"  Order Status: {order.status}/{order.payment_status}")

      if event.payload:
        print(f"  Payload: {json.dumps(event.payload, indent=2)}")
      print("-" * 40)

  await engine.dispose()


def main(argv):
  """Main entry point for the log dump script."""
  del argv
  asyncio.run(dump_logs())


if __name__ == "__main__":
  absl_app.run(main)
