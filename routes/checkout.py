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

"""Checkout route for the checkout engine."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Response
from models import CheckoutRequest
from models import CheckoutResponse
from services.checkout_service import CheckoutService

router = APIRouter()


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=201,
    operation_id="create_checkout",
)
async def create_checkout(
    response: Response,
    checkout_req: CheckoutRequest = Body(...),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    idempotency_key: str = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> CheckoutResponse:
  """Create an order from the caller's cart.

  Returns 201 for a new order and 200 when the idempotency key replays an
  existing one.
  """
  result = await checkout_service.checkout(
      identity.user_id, idempotency_key, checkout_req
  )
  if result.replayed:
    response.status_code = 200
  return result
