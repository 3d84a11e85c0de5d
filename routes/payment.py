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

"""Payment provider webhook route."""

from typing import Optional

import dependencies
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Header
from fastapi import Request
from models import WebhookResult
from services.payment_provider import SIGNATURE_HEADER
from services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/payment/webhook",
    response_model=WebhookResult,
    operation_id="payment_webhook",
)
async def payment_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> WebhookResult:
  """Receive a payment event. The signature covers the raw body."""
  payload = await request.body()
  return await payment_service.handle_webhook(payload, signature)
