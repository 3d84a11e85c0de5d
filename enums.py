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

"""Enumerations for the checkout engine.

This module defines the string enums used to represent the state of listings,
orders, payments and inventory holds throughout the server.
"""

import enum


class ListingStatus(str, enum.Enum):
  DRAFT = "DRAFT"
  PUBLISHED = "PUBLISHED"
  ARCHIVED = "ARCHIVED"
  REMOVED = "REMOVED"


class ComplianceStatus(str, enum.Enum):
  OK = "OK"
  FLAGGED = "FLAGGED"
  REMOVED = "REMOVED"


class ListingType(str, enum.Enum):
  PHYSICAL = "PHYSICAL"
  DIGITAL = "DIGITAL"


class ProcessingMode(str, enum.Enum):
  READY_TO_SHIP = "READY_TO_SHIP"
  MADE_TO_ORDER = "MADE_TO_ORDER"


class ReturnPolicyType(str, enum.Enum):
  RETURNS_ACCEPTED = "RETURNS_ACCEPTED"
  EXCHANGES_ONLY = "EXCHANGES_ONLY"
  NO_RETURNS = "NO_RETURNS"


class OrderStatus(str, enum.Enum):
  PENDING_PAYMENT = "PENDING_PAYMENT"
  PAID = "PAID"
  PAYMENT_FAILED = "PAYMENT_FAILED"
  CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
  PENDING = "PENDING"
  COMPLETED = "COMPLETED"
  FAILED = "FAILED"


class PaymentEventType(str, enum.Enum):
  SUCCEEDED = "payment.succeeded"
  FAILED = "payment.failed"
  CANCELED = "payment.canceled"


class StockSource(str, enum.Enum):
  """Which row an order item's stock was taken from."""

  LISTING = "listing"
  VARIANT = "variant"


class StockDecrementPoint(str, enum.Enum):
  """Where inventory is authoritatively removed."""

  CHECKOUT = "checkout"
  PAYMENT = "payment"


class ViolationCode(str, enum.Enum):
  SELF_PURCHASE_NOT_ALLOWED = "SELF_PURCHASE_NOT_ALLOWED"
  LISTING_NOT_AVAILABLE = "LISTING_NOT_AVAILABLE"
  INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
