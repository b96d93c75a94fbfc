"""
Storefront Exception Hierarchy

Error codes are namespaced by the component that raises them
(payment:, order:, user:) so API clients can branch on them.
"""
from typing import Optional, Dict, Any


class StorefrontError(Exception):
    """
    Base exception for all domain errors.

    Every subclass carries a stable error code and the HTTP status the
    API layer answers with.
    """

    status_code: int = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# ============================================================================
# Payment Errors
# ============================================================================

class UnsupportedMethodError(StorefrontError):
    """
    Payment method is not one of the supported methods.

    Raised before any transaction record is created.
    """

    def __init__(self, method: Any):
        super().__init__(
            "payment:method:unsupported",
            f"Unsupported payment method: {method}",
            {"method": str(method)}
        )


class MissingCredentialError(StorefrontError):
    """
    A credential the payment method requires was not supplied.

    Example:
    - Card payment without a card token
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("payment:credential:missing", message, details)


class StrategyFailureError(StorefrontError):
    """
    The execution strategy rejected the charge.

    Examples:
    - Insufficient funds
    - Card expired
    - Transfer amount above the settlement limit

    The transaction is already marked failed when this reaches the caller.
    """

    status_code = 402

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("payment:strategy:failed", message, details)


class InvalidStateTransitionError(StorefrontError):
    """
    Transition not allowed from the transaction's current status.

    Examples:
    - Refunding a pending or failed transaction
    - Refunding a transaction twice
    """

    status_code = 409

    def __init__(self, current: str, target: str, details: Optional[Dict[str, Any]] = None):
        self.current = current
        self.target = target
        super().__init__(
            "payment:state:invalid_transition",
            f"Invalid payment transition: {current} -> {target}",
            {"current": current, "target": target, **(details or {})}
        )


# ============================================================================
# Lookup Errors
# ============================================================================

class NotFoundError(StorefrontError):
    """Requested record does not exist."""

    status_code = 404


class PaymentNotFoundError(NotFoundError):

    def __init__(self, transaction_id: str):
        super().__init__(
            "payment:not_found",
            f"No transaction found with ID: {transaction_id}",
            {"transaction_id": transaction_id}
        )


class OrderNotFoundError(NotFoundError):

    def __init__(self, order_id: str):
        super().__init__(
            "order:not_found",
            f"No order found with ID: {order_id}",
            {"order_id": order_id}
        )


class UserNotFoundError(NotFoundError):

    def __init__(self, user_id: str):
        super().__init__(
            "user:not_found",
            f"No user found with ID: {user_id}",
            {"user_id": user_id}
        )


# ============================================================================
# Order / User Errors
# ============================================================================

class UserAlreadyExistsError(StorefrontError):

    status_code = 409

    def __init__(self, email: str):
        super().__init__(
            "user:already_exists",
            f"User already exists: {email}",
            {"email": email}
        )


class OrderTotalMismatchError(StorefrontError):
    """Payment amount differs from the billable total of the order."""

    def __init__(self, order_id: str, expected: Any, actual: Any):
        super().__init__(
            "order:total_mismatch",
            f"Payment amount {actual} does not match order total {expected}",
            {"order_id": order_id, "expected": str(expected), "actual": str(actual)}
        )


class OrderNotPayableError(StorefrontError):
    """Order status no longer accepts payments, e.g. cancelled or refunded."""

    status_code = 409

    def __init__(self, order_id: str, status: str):
        super().__init__(
            "order:state:not_payable",
            f"Order {order_id} cannot be paid in status {status}",
            {"order_id": order_id, "status": status}
        )
