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

"""Order Integrity & Checkout Engine (Python/FastAPI)."""

import logging
import sys
from typing import Sequence
from absl import app as absl_app
import config
from exceptions import CheckoutEngineError
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from routes.cart import router as cart_router
from routes.checkout import router as checkout_router
from routes.order import router as order_router
from routes.payment import router as payment_router
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Checkout Engine",
    version=config.SERVER_VERSION,
    description="Turns carts into immutable, paid orders",
    lifespan=config.lifespan,
)


@app.exception_handler(CheckoutEngineError)
async def checkout_engine_exception_handler(
    request: Request, exc: CheckoutEngineError
):
  """Converts checkout engine exceptions to JSON responses."""
  del request  # Unused.
  content = {"detail": exc.message, "code": exc.code}
  if exc.details is not None:
    content["details"] = exc.details
  return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(payment_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the checkout engine server."""
  del argv  # Unused.

  if config.FLAGS.db_path is None or config.FLAGS.port is None:
    logger.error("Both --db_path and --port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  logger.info(
      "Stock is decremented at %s", config.FLAGS.stock_decrement_point
  )
  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
