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

"""Order management routes for the checkout engine."""

import dependencies
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Path
from fastapi import Query
from models import OrderListResponse
from models import OrderResponse
from models import WebhookResult
from services.checkout_service import CheckoutService
from services.payment_service import PaymentService

router = APIRouter()


@router.get(
    "/orders",
    response_model=OrderListResponse,
    operation_id="list_orders",
)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> OrderListResponse:
  """List the caller's orders, newest first."""
  return await checkout_service.list_orders(identity.user_id, page, page_size)


@router.get(
    "/orders/{id}",
    response_model=OrderResponse,
    operation_id="get_order",
)
async def get_order(
    order_id: str = Path(..., alias="id"),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> OrderResponse:
  """Get one of the caller's orders by ID or order number."""
  return await checkout_service.get_order(identity.user_id, order_id)


@router.post(
    "/testing/simulate-payment/{id}",
    response_model=WebhookResult,
    operation_id="simulate_payment",
    dependencies=[Depends(dependencies.verify_simulation_secret)],
)
async def simulate_payment(
    order_id: str = Path(..., alias="id"),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> WebhookResult:
  """Simulate a successful payment through the webhook reconciler."""
  return await payment_service.simulate_success(order_id)
