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

"""Shared configuration and startup logic for the checkout engine."""

import contextlib
import uuid
from absl import flags
import db
from enums import StockDecrementPoint
from fastapi import FastAPI

FLAGS = flags.FLAGS

SERVER_VERSION = "1.0.0"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("db_path", None, "Path to the SQLite database")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "simulation_secret",
      str(uuid.uuid4()),
      "Secret key for simulation endpoints",
  )
  flags.DEFINE_string(
      "payment_webhook_secret",
      "dev-secret",
      "Shared secret used to verify payment webhook signatures",
  )
  flags.DEFINE_string("payment_provider", "mock", "Payment provider to use")
  flags.DEFINE_enum(
      "stock_decrement_point",
      StockDecrementPoint.PAYMENT.value,
      [p.value for p in StockDecrementPoint],
      "Where inventory is authoritatively decremented: when the order is"
      " created, or when the payment is confirmed",
  )
  flags.DEFINE_string(
      "home_country", "TR", "Country treated as domestic for shipping"
  )
  flags.DEFINE_string(
      "order_events_webhook_url",
      None,
      "URL notified with an order_paid event after a payment succeeds",
  )
except flags.DuplicateFlagError:
  pass


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing the database."""
  del app  # Unused.
  # In tests the flag is unset and sessions are provided via overrides.
  if FLAGS.db_path:
    await db.manager.init_db(FLAGS.db_path)
  yield
  await db.manager.close()
