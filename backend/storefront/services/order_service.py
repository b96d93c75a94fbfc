"""
Order Service

Creates orders, tracks their status and answers order lookups for the
payment flow (existence, billable total, status synchronization).
"""
from decimal import Decimal
from typing import List, Optional, Sequence

from ..db.client import DatabaseClient, RecordNotFoundError
from ..db.models import OrderModel, utcnow
from ..exceptions import OrderNotFoundError, OrderNotPayableError
from ..models.orders import CreateOrderInput, Order, OrderItem, OrderStatus
from ..utils.logger import AuditLogger
from .user_service import UserService

ORDERS_TABLE = OrderModel.__tablename__

PAYABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})


def calculate_order_total(items: Sequence[OrderItem]) -> Decimal:
    return sum((item.price * item.quantity for item in items), Decimal("0"))


class OrderService:

    def __init__(self, db: DatabaseClient, logger: AuditLogger, user_service: UserService):
        self.db = db
        self.logger = logger
        self.user_service = user_service

    async def create_order(self, data: CreateOrderInput) -> Order:
        """
        Create a pending order for an existing user.

        Raises:
            UserNotFoundError: user_id does not exist
        """
        self.logger.info("Creating order", user_id=data.user_id, items=len(data.items))

        await self.user_service.require_user(data.user_id)
        total = calculate_order_total(data.items)

        record = await self.db.insert(ORDERS_TABLE, {
            "user_id": data.user_id,
            "items": [item.model_dump(mode="json") for item in data.items],
            "shipping_address": data.shipping_address,
            "total": total,
            "status": OrderStatus.PENDING.value,
            "created_at": utcnow(),
        })

        self.logger.info("Order created", order_id=record["id"], total=total)
        return Order.model_validate(record)

    async def get_order(self, order_id: str) -> Optional[Order]:
        record = await self.db.find_by_id(ORDERS_TABLE, order_id)
        return Order.model_validate(record) if record else None

    async def require_order(self, order_id: str) -> Order:
        order = await self.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def require_payable_order(self, order_id: str) -> Order:
        """
        Look up an order that may still take a payment.

        Raises:
            OrderNotFoundError: order_id does not exist
            OrderNotPayableError: order is past pending / processing
        """
        order = await self.require_order(order_id)
        if order.status not in PAYABLE_STATUSES:
            raise OrderNotPayableError(order_id, order.status.value)
        return order

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        status = OrderStatus(status)
        self.logger.info("Updating order status", order_id=order_id, status=status.value)
        try:
            record = await self.db.update(ORDERS_TABLE, order_id, {
                "status": status.value,
                "updated_at": utcnow(),
            })
        except RecordNotFoundError:
            raise OrderNotFoundError(order_id) from None
        return Order.model_validate(record)

    async def get_user_orders(self, user_id: str) -> List[Order]:
        records = await self.db.find_many(
            ORDERS_TABLE,
            {"user_id": user_id},
            order_by=[("created_at", "desc")]
        )
        return [Order.model_validate(r) for r in records]

    async def cancel_order(self, order_id: str) -> Order:
        order = await self.require_order(order_id)
        cancelled = await self.update_order_status(order_id, OrderStatus.CANCELLED)

        user = await self.user_service.get_user(order.user_id)
        self.logger.info("Order cancelled", order_id=order_id, user_email=user.email if user else None)
        return cancelled

    async def refund_order(self, order_id: str, refund_percent: Decimal) -> Decimal:
        """
        Mark an order refunded.

        Args:
            order_id: Order to refund
            refund_percent: Fraction of the total to return, 0 to 1

        Returns:
            Refund amount
        """
        refund_percent = Decimal(str(refund_percent))
        if not Decimal("0") <= refund_percent <= Decimal("1"):
            raise ValueError(f"refund_percent must be between 0 and 1, got {refund_percent}")

        order = await self.require_order(order_id)
        refund_amount = (order.total * refund_percent).quantize(Decimal("0.01"))

        await self.update_order_status(order_id, OrderStatus.REFUNDED)
        self.logger.info("Order refunded", order_id=order_id, refund_amount=refund_amount)
        return refund_amount

    async def get_total_revenue(self) -> Decimal:
        """Sum of totals for delivered orders."""
        records = await self.db.find_many(ORDERS_TABLE, {"status": OrderStatus.DELIVERED.value})
        return sum((Decimal(str(r["total"])) for r in records), Decimal("0"))
