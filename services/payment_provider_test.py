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

"""Tests for webhook signing and the mock payment provider."""

import asyncio

from absl.testing import absltest
import db
from exceptions import InvalidRequestError
from exceptions import WebhookSignatureError
from models import PaymentWebhookEvent
from services import payment_provider

SECRET = "test-secret"


class MockPaymentProviderTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.provider = payment_provider.get_payment_provider("mock")

  def test_verify_accepts_signed_event(self) -> None:
    body = payment_provider.encode_event(
        PaymentWebhookEvent(
            id="evt_1", type="payment.succeeded", order_id="order_1"
        )
    )
    event = self.provider.verify_webhook(
        body, payment_provider.sign_payload(body, SECRET), SECRET
    )
    self.assertEqual(event.order_id, "order_1")
    self.assertIsNone(event.payment_intent_id)

  def test_verify_rejects_bad_or_missing_signature(self) -> None:
    body = b'{"id": "evt_1", "type": "payment.succeeded"}'
    with self.assertRaises(WebhookSignatureError):
      self.provider.verify_webhook(body, "deadbeef", SECRET)
    with self.assertRaises(WebhookSignatureError):
      self.provider.verify_webhook(body, None, SECRET)
    with self.assertRaises(WebhookSignatureError):
      self.provider.verify_webhook(
          body, payment_provider.sign_payload(body, "other"), SECRET
      )

  def test_verify_rejects_malformed_body(self) -> None:
    body = b'{"type": "payment.succeeded"}'
    with self.assertRaises(InvalidRequestError) as cm:
      self.provider.verify_webhook(
          body, payment_provider.sign_payload(body, SECRET), SECRET
      )
    self.assertEqual(cm.exception.details[0]["loc"], ["id"])

  def test_create_payment_intent(self) -> None:
    order = db.Order(
        id="order_1",
        order_number="ORD-1",
        grand_total_minor=3300,
        currency="TRY",
    )
    intent = asyncio.run(self.provider.create_payment_intent(order))
    self.assertStartsWith(intent.id, "mock_pi_")
    self.assertEqual(intent.amount_minor, 3300)
    self.assertEqual(intent.redirect_url, "/testing/simulate-payment/order_1")

  def test_unknown_provider(self) -> None:
    with self.assertRaises(ValueError):
      payment_provider.get_payment_provider("stripe")


if __name__ == "__main__":
  absltest.main()
