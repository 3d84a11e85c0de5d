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

"""Payment provider interface and the mock provider used in development.

A provider creates a payment intent for an order and turns a raw, signed
webhook body into a typed `PaymentWebhookEvent`. Webhook bodies are signed
with HMAC-SHA256 over the raw bytes; the hex digest travels in the
`X-Payment-Signature` header.
"""

import abc
import hashlib
import hmac
import logging
import secrets
from typing import Optional

import db
from exceptions import InvalidRequestError
from exceptions import WebhookSignatureError
from models import PaymentIntent
from models import PaymentWebhookEvent
import pydantic

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"


def sign_payload(payload: bytes, secret: str) -> str:
  """Returns the hex HMAC-SHA256 signature of a webhook body."""
  return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def encode_event(event: PaymentWebhookEvent) -> bytes:
  """Serializes an event the way the provider delivers it."""
  return event.model_dump_json(exclude_none=True).encode("utf-8")


class PaymentProvider(abc.ABC):
  """What the checkout engine needs from a payment provider."""

  @abc.abstractmethod
  async def create_payment_intent(self, order: db.Order) -> PaymentIntent:
    """Starts collecting the grand total of an order."""

  @abc.abstractmethod
  def verify_webhook(
      self, payload: bytes, signature: Optional[str], secret: str
  ) -> PaymentWebhookEvent:
    """Authenticates and parses a webhook body.

    Raises:
      WebhookSignatureError: The signature is missing or wrong.
      InvalidRequestError: The body is authentic but not a valid event.
    """


class MockPaymentProvider(PaymentProvider):
  """Provider that approves everything and signs with a shared secret."""

  async def create_payment_intent(self, order: db.Order) -> PaymentIntent:
    intent = PaymentIntent(
        id=f"mock_pi_{secrets.token_hex(12)}",
        status="pending",
        amount_minor=order.grand_total_minor,
        currency=order.currency,
        redirect_url=f"/testing/simulate-payment/{order.id}",
    )
    logger.info(
        "Created mock payment intent %s for order %s (%d %s)",
        intent.id,
        order.order_number,
        intent.amount_minor,
        intent.currency,
    )
    return intent

  def verify_webhook(
      self, payload: bytes, signature: Optional[str], secret: str
  ) -> PaymentWebhookEvent:
    expected = sign_payload(payload, secret)
    if not signature or not hmac.compare_digest(expected, signature.strip()):
      raise WebhookSignatureError()
    try:
      return PaymentWebhookEvent.model_validate_json(payload)
    except pydantic.ValidationError as e:
      raise InvalidRequestError(
          "Malformed payment webhook payload",
          details=[
              {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
              for err in e.errors()
          ],
      ) from e


_PROVIDERS = {
    "mock": MockPaymentProvider,
}


def get_payment_provider(name: str = "mock") -> PaymentProvider:
  """Returns the provider registered under a name."""
  provider_cls = _PROVIDERS.get(name)
  if provider_cls is None:
    raise ValueError(f"Payment provider {name!r} is not implemented")
  return provider_cls()
