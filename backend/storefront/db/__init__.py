"""
Database package for Storefront.

Exports database initialization, models, and the generic data-access client.
"""
from .init_db import create_engine, create_session_factory, initialize_database
from .client import INSERTION_ORDER, DatabaseClient, RecordNotFoundError, StaleRecordError
from .models import (
    Base,
    UserModel,
    OrderModel,
    PaymentTransactionModel,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "initialize_database",
    "INSERTION_ORDER",
    "DatabaseClient",
    "RecordNotFoundError",
    "StaleRecordError",
    "Base",
    "UserModel",
    "OrderModel",
    "PaymentTransactionModel",
]
