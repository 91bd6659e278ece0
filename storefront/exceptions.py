# storefront/exceptions.py
"""Error taxonomy shared by the services and the HTTP layer.

Every error that can reach a client is a ``StorefrontError`` carrying a stable
``code``, the HTTP status it maps to, and whether the caller may retry the same
request unchanged.
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """Base class for request-scoped failures"""
    code = "InternalError"
    http_status = 500
    retryable = False

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message()
        self.field = field
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.field:
            data["field"] = self.field
        return data


# Validation errors

class ValidationError(StorefrontError):
    code = "ValidationError"
    http_status = 400


class EmptyCart(ValidationError):
    code = "EmptyCart"

    @classmethod
    def default_message(cls) -> str:
        return "Order must contain at least one item"


class InvalidLineItem(ValidationError):
    code = "InvalidLineItem"


class InvalidAmount(ValidationError):
    code = "InvalidAmount"


class InvalidCapture(ValidationError):
    code = "InvalidCapture"


# Authorization errors

class Unauthorized(StorefrontError):
    code = "Unauthorized"
    http_status = 401

    @classmethod
    def default_message(cls) -> str:
        return "Not authorized, no valid token"


class Forbidden(StorefrontError):
    code = "Forbidden"
    http_status = 403

    @classmethod
    def default_message(cls) -> str:
        return "Forbidden"


class OrderNotFound(StorefrontError):
    code = "NotFound"
    http_status = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


# State-conflict errors

class PaymentAmountMismatch(StorefrontError):
    code = "PaymentAmountMismatch"
    http_status = 400


class AlreadyPaid(StorefrontError):
    code = "AlreadyPaid"
    http_status = 409


class DuplicateCapture(StorefrontError):
    code = "DuplicateCapture"
    http_status = 409

    def __init__(self, external_id: str, order_id: Optional[str] = None):
        self.external_id = external_id
        self.order_id = order_id
        super().__init__(f"Capture {external_id} has already paid another order")


class OrderNotPaid(StorefrontError):
    code = "OrderNotPaid"
    http_status = 409

    @classmethod
    def default_message(cls) -> str:
        return "Order has not been paid"


# Infrastructure errors

class StorageUnavailable(StorefrontError):
    code = "StorageUnavailable"
    http_status = 503
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Order storage is unavailable, retry later"


# Store-internal signals, never sent to clients directly

class DuplicateKey(Exception):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order id {order_id} already exists")


class PredicateFailed(Exception):
    """Raised by a conditional update that left the record untouched"""

    def __init__(self, current):
        self.current = current
        super().__init__(f"Condition not met for order {current.id}")


class GatewayUnavailable(StorageUnavailable):
    code = "GatewayUnavailable"

    @classmethod
    def default_message(cls) -> str:
        return "Payment gateway is unavailable, retry later"
