"""
Orders API Endpoints

Order creation, lookup and cancellation. Order status also moves as a
side effect of payments (see payments.py).
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
import logging

from ..models.orders import CreateOrderInput, Order
from ..services.order_service import OrderService
from .deps import get_order_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_order_endpoint(
    body: CreateOrderInput,
    orders: OrderService = Depends(get_order_service)
) -> Order:
    """
    Create a pending order.

    Example:
        POST /api/orders
        {"user_id": "usr_...", "items": [{"product_id": "p1", "name": "Mug", "price": "12.50", "quantity": 2}]}
    """
    return await orders.create_order(body)


@router.get("/user/{user_id}")
async def get_user_orders_endpoint(
    user_id: str,
    orders: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    """
    Get orders for a user (most recent first).

    Example:
        GET /api/orders/user/usr_abc123
    """
    logger.debug(f"Retrieving orders for user: {user_id}")
    result = await orders.get_user_orders(user_id)
    return {"user_id": user_id, "count": len(result), "orders": result}


@router.get("/{order_id}")
async def get_order_endpoint(
    order_id: str,
    orders: OrderService = Depends(get_order_service)
) -> Order:
    return await orders.require_order(order_id)


@router.post("/{order_id}/cancel")
async def cancel_order_endpoint(
    order_id: str,
    orders: OrderService = Depends(get_order_service)
) -> Order:
    return await orders.cancel_order(order_id)
