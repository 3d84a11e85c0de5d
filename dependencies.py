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

"""FastAPI dependencies for the checkout engine.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Buyer identity resolution (X-User-Id, set by the authenticating gateway).
- Header validation (Idempotency-Key, Simulation-Secret).
- Database session management.
- Service instantiation (Cart, Checkout, Payment, Fulfillment).
"""

from typing import AsyncGenerator, Optional

import config
import db
from fastapi import Depends
from fastapi import Header
from fastapi import HTTPException
from pydantic import BaseModel
from services.cart_service import CartService
from services.checkout_service import CheckoutService
from services.fulfillment_service import FulfillmentService
from services.payment_provider import get_payment_provider
from services.payment_provider import PaymentProvider
from services.payment_service import PaymentService
from sqlalchemy.ext.asyncio import AsyncSession

MAX_IDEMPOTENCY_KEY_LENGTH = 255


class Identity(BaseModel):
  """The resolved buyer identity."""

  user_id: str


async def current_identity(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Identity:
  """Resolves the caller. Authentication itself happens upstream."""
  if not x_user_id or not x_user_id.strip():
    raise HTTPException(status_code=401, detail="Authentication required")
  return Identity(user_id=x_user_id.strip())


async def idempotency_header(
    idempotency_key: str = Header(...),
) -> str:
  """Extracts and validates the Idempotency-Key header."""
  key = idempotency_key.strip()
  if not key or len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
    raise HTTPException(
        status_code=400,
        detail=(
            "Idempotency-Key must be 1 to"
            f" {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        ),
    )
  return key


async def verify_simulation_secret(
    simulation_secret: Optional[str] = Header(None, alias="Simulation-Secret"),
) -> None:
  """Verifies the secret for simulation endpoints."""
  expected_secret = config.FLAGS.simulation_secret
  if not expected_secret:
    raise HTTPException(
        status_code=500, detail="Simulation secret not configured"
    )

  if not simulation_secret or simulation_secret != expected_secret:
    raise HTTPException(status_code=403, detail="Invalid Simulation Secret")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for a database session."""
  async with db.manager.session_factory() as session:
    yield session


def get_fulfillment_service() -> FulfillmentService:
  """Dependency provider for FulfillmentService."""
  return FulfillmentService(home_country=config.FLAGS.home_country)


def get_provider() -> PaymentProvider:
  """Dependency provider for the configured payment provider."""
  return get_payment_provider(config.FLAGS.payment_provider)


def get_cart_service(
    session: AsyncSession = Depends(get_db),
) -> CartService:
  """Dependency provider for CartService."""
  return CartService(session)


def get_checkout_service(
    session: AsyncSession = Depends(get_db),
    fulfillment_service: FulfillmentService = Depends(get_fulfillment_service),
    payment_provider: PaymentProvider = Depends(get_provider),
) -> CheckoutService:
  """Dependency provider for CheckoutService."""
  return CheckoutService(
      session,
      fulfillment_service,
      payment_provider,
      config.FLAGS.stock_decrement_point,
  )


def get_payment_service(
    session: AsyncSession = Depends(get_db),
    payment_provider: PaymentProvider = Depends(get_provider),
) -> PaymentService:
  """Dependency provider for PaymentService."""
  return PaymentService(
      session,
      payment_provider,
      config.FLAGS.payment_webhook_secret,
      config.FLAGS.order_events_webhook_url,
  )
