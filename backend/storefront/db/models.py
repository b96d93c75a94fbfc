"""
SQLAlchemy ORM Models for Storefront

Every table uses a string primary key named ``id`` so the generic
DatabaseClient can address any of them by table name and record ID.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Numeric, Text, JSON, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserModel(Base):
    """ORM model for users table."""
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime)


class OrderModel(Base):
    """
    ORM model for orders table.

    Line items are stored as a JSON array; total is computed once at creation.
    """
    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    items = Column(JSON, nullable=False)
    shipping_address = Column(Text)
    total = Column(Numeric(12, 2), nullable=False)
    status = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled', 'refunded')",
            name="order_status_check"
        ),
    )


class PaymentTransactionModel(Base):
    """
    ORM model for payment_transactions table.

    One row per payment attempt. Rows are written only by PaymentService.
    """
    __tablename__ = "payment_transactions"

    id = Column(String, primary_key=True)
    order_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False)
    method = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime)
    error_message = Column(Text)
    refunded_at = Column(DateTime)
    refund_reason = Column(Text)

    __table_args__ = (
        CheckConstraint(
            "method IN ('credit_card', 'debit_card', 'paypal', 'bank_transfer')",
            name="payment_method_check"
        ),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'refunded')",
            name="payment_status_check"
        ),
    )
