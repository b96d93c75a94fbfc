"""
Pydantic Payment Models

PaymentTransaction is the unit of record for one payment attempt.
Amounts are decimals in the currency's major unit with at most two decimal
places, the precision the amount columns store.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


class PaymentMethod(str, Enum):
    """Closed set of payment methods. Each one has exactly one execution strategy."""
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, Enum):
    """
    Transaction lifecycle states.

    PROCESSING is reserved for asynchronous settlement and is never entered
    by the current state machine.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentTransaction(BaseModel):
    """
    Payment attempt as persisted in payment_transactions.

    - completed_at is set only on the transition into completed
    - error_message is set only on the transition into failed
    - refunded_at / refund_reason are set only on the transition into refunded
    """
    id: str = Field(pattern="^txn_")
    order_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "example": {
                "id": "txn_abc123def4567890",
                "order_id": "ord_9f8e7d6c5b4a3210",
                "amount": "74.00",
                "currency": "USD",
                "method": "credit_card",
                "status": "completed",
                "created_at": "2025-10-17T14:35:00",
                "completed_at": "2025-10-17T14:35:01",
                "error_message": None,
                "refunded_at": None,
                "refund_reason": None
            }
        }
    }


class CreatePaymentInput(BaseModel):
    """
    Payment request.

    method is kept as a plain string here so an unknown method surfaces as
    UnsupportedMethodError from the service rather than a schema error.
    """
    order_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    currency: str = Field(min_length=3, max_length=3)
    method: str
    card_token: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.upper()


class RefundRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BatchRefundRequest(BaseModel):
    transaction_ids: List[str] = Field(min_length=1)
    reason: Optional[str] = Field(default=None, max_length=500)


class RefundOutcome(BaseModel):
    """Result of one refund inside a batch; exactly one of transaction / error_code is set."""
    transaction_id: str
    transaction: Optional[PaymentTransaction] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.transaction is not None
