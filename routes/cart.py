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

"""Cart routes for the checkout engine."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Path
from models import AddCartItemRequest
from models import CartResponse
from models import UpdateCartItemRequest
from services.cart_service import CartService

router = APIRouter()


@router.get("/cart", response_model=CartResponse, operation_id="get_cart")
async def get_cart(
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    cart_service: CartService = Depends(dependencies.get_cart_service),
) -> CartResponse:
  """Get the caller's cart with current prices."""
  return await cart_service.get_cart(identity.user_id)


@router.post(
    "/cart/items",
    response_model=CartResponse,
    status_code=201,
    operation_id="add_cart_item",
)
async def add_cart_item(
    item_req: AddCartItemRequest = Body(...),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    cart_service: CartService = Depends(dependencies.get_cart_service),
) -> CartResponse:
  """Add a listing to the caller's cart."""
  return await cart_service.add_item(identity.user_id, item_req)


@router.patch(
    "/cart/items/{id}",
    response_model=CartResponse,
    operation_id="update_cart_item",
)
async def update_cart_item(
    cart_item_id: str = Path(..., alias="id"),
    update_req: UpdateCartItemRequest = Body(...),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    cart_service: CartService = Depends(dependencies.get_cart_service),
) -> CartResponse:
  """Change the quantity of a cart line."""
  return await cart_service.update_item(
      identity.user_id, cart_item_id, update_req
  )


@router.delete(
    "/cart/items/{id}",
    response_model=CartResponse,
    operation_id="remove_cart_item",
)
async def remove_cart_item(
    cart_item_id: str = Path(..., alias="id"),
    identity: dependencies.Identity = Depends(dependencies.current_identity),
    cart_service: CartService = Depends(dependencies.get_cart_service),
) -> CartResponse:
  """Remove a line from the caller's cart."""
  return await cart_service.remove_item(identity.user_id, cart_item_id)
