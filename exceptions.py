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

"""Custom exceptions for the checkout engine."""

from typing import Any, Optional, Sequence

from enums import ViolationCode


class CheckoutEngineError(Exception):
  """Base class for all checkout engine exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "INTERNAL_ERROR",
      status_code: int = 500,
      details: Optional[Any] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.details = details
    super().__init__(self.message)


class ResourceNotFoundError(CheckoutEngineError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="NOT_FOUND", status_code=404)


class ForbiddenError(CheckoutEngineError):
  """Raised when the caller may not act on a resource it can see."""

  def __init__(self, message: str):
    super().__init__(message, code="FORBIDDEN", status_code=403)


class InvalidRequestError(CheckoutEngineError):
  """Raised when the request is invalid (e.g. malformed payload)."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="VALIDATION_ERROR", status_code=400, details=details
    )


class IdempotencyConflictError(CheckoutEngineError):
  """Raised when an idempotency key belongs to another buyer's order."""

  def __init__(self, message: str):
    super().__init__(message, code="IDEMPOTENCY_CONFLICT", status_code=409)


class OrderConflictError(CheckoutEngineError):
  """Raised when an order row could not be written due to a unique clash."""

  def __init__(self, message: str):
    super().__init__(message, code="CONFLICT", status_code=409)


class CartEmptyError(CheckoutEngineError):
  """Raised when checking out a cart with no lines."""

  def __init__(self, message: str = "Your cart is empty"):
    super().__init__(message, code="CART_EMPTY", status_code=400)


class SelfPurchaseError(CheckoutEngineError):
  """Raised when a buyer tries to purchase their own listing."""

  def __init__(
      self,
      message: str = "You cannot purchase your own listing",
      details: Optional[Any] = None,
  ):
    super().__init__(
        message,
        code=ViolationCode.SELF_PURCHASE_NOT_ALLOWED.value,
        status_code=400,
        details=details,
    )


class ListingNotPurchasableError(CheckoutEngineError):
  """Raised when a listing or variant cannot currently be bought."""

  def __init__(
      self,
      message: str = "This listing is no longer available",
      details: Optional[Any] = None,
  ):
    super().__init__(
        message,
        code=ViolationCode.LISTING_NOT_AVAILABLE.value,
        status_code=400,
        details=details,
    )


class InsufficientStockError(CheckoutEngineError):
  """Raised when there is not enough inventory for a requested quantity.

  The advisory check reports 400; losing the authoritative conditional
  decrement to a concurrent purchase reports 409.
  """

  def __init__(
      self,
      message: str,
      details: Optional[Any] = None,
      status_code: int = 400,
  ):
    super().__init__(
        message,
        code=ViolationCode.INSUFFICIENT_STOCK.value,
        status_code=status_code,
        details=details,
    )


class PersonalizationInvalidError(CheckoutEngineError):
  """Raised when personalization answers do not satisfy the listing fields."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message,
        code="PERSONALIZATION_INVALID",
        status_code=400,
        details=details,
    )


class CheckoutRejectedError(CheckoutEngineError):
  """Raised when cart lines fail validation for more than one reason."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="CHECKOUT_FAILED", status_code=400, details=details
    )


class WebhookSignatureError(CheckoutEngineError):
  """Raised when an inbound payment webhook fails authentication."""

  def __init__(self, message: str = "Invalid webhook signature"):
    super().__init__(message, code="UNAUTHORIZED", status_code=401)


class StockReconciliationError(CheckoutEngineError):
  """Raised when a confirmed payment cannot take its inventory.

  The payment stands and the order is flagged for manual reconciliation.
  """

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message,
        code="PAYMENT_STOCK_CONFLICT",
        status_code=409,
        details=details,
    )


_VIOLATION_ERRORS = {
    ViolationCode.SELF_PURCHASE_NOT_ALLOWED: SelfPurchaseError,
    ViolationCode.LISTING_NOT_AVAILABLE: ListingNotPurchasableError,
}


def error_for_violations(violations: Sequence[Any]) -> CheckoutEngineError:
  """Builds the error reported for a non-empty list of line violations.

  When every violation has the same code the matching typed error is
  returned, otherwise a `CheckoutRejectedError`. All violations are attached
  as details either way.

  Args:
    violations: `LineViolation` values collected from the stock guard.

  Returns:
    The exception to raise.
  """
  details = [v.model_dump(mode="json") for v in violations]
  codes = {v.code for v in violations}
  if len(codes) == 1:
    code = codes.pop()
    message = (
        violations[0].message
        if len(violations) == 1
        else "Some items in your cart cannot be purchased"
    )
    if code == ViolationCode.INSUFFICIENT_STOCK:
      return InsufficientStockError(message, details=details)
    return _VIOLATION_ERRORS[code](message, details=details)
  return CheckoutRejectedError(
      "Some items in your cart cannot be purchased", details=details
  )
