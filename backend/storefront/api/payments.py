"""
Payments API Endpoints

Call site of the payment processor: confirms the order exists and still
accepts payment (pending or processing), optionally
cross-checks the amount against the order total, runs the payment, and
keeps the order status in step with the payment outcome.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
import logging

from ..config import Settings
from ..exceptions import OrderTotalMismatchError
from ..models.orders import OrderStatus
from ..models.payments import (
    BatchRefundRequest,
    CreatePaymentInput,
    PaymentTransaction,
    RefundRequest,
)
from ..services.order_service import OrderService
from ..services.payment_service import PaymentService
from .deps import get_order_service, get_payment_service, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_payment_endpoint(
    body: CreatePaymentInput,
    payments: PaymentService = Depends(get_payment_service),
    orders: OrderService = Depends(get_order_service),
    app_settings: Settings = Depends(get_settings)
) -> PaymentTransaction:
    """
    Pay for an order.

    Returns:
        The completed transaction (201). A declined charge answers 402 and
        the failed transaction stays visible in the order's payment history.
        An order that is no longer pending / processing answers 409 and no
        transaction is created.

    Example:
        POST /api/payments
        {"order_id": "ord_...", "amount": "74.00", "currency": "USD",
         "method": "credit_card", "card_token": "tok_visa_4242"}
    """
    order = await orders.require_payable_order(body.order_id)

    if app_settings.enforce_order_total and body.amount != order.total:
        raise OrderTotalMismatchError(order.id, order.total, body.amount)

    transaction = await payments.process_payment(body)
    await orders.update_order_status(order.id, OrderStatus.PROCESSING)
    return transaction


@router.post("/refunds")
async def batch_refund_endpoint(
    body: BatchRefundRequest,
    payments: PaymentService = Depends(get_payment_service),
    orders: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    """
    Refund several transactions with bounded concurrency.

    Returns:
        {
            "requested": int,
            "refunded": int,
            "results": List[RefundOutcome]
        }
    """
    outcomes = await payments.refund_payments(body.transaction_ids, body.reason)

    for order_id in sorted({o.transaction.order_id for o in outcomes if o.succeeded}):
        if await orders.get_order(order_id):
            await orders.update_order_status(order_id, OrderStatus.REFUNDED)

    return {
        "requested": len(outcomes),
        "refunded": sum(1 for o in outcomes if o.succeeded),
        "results": [o.model_dump(mode="json") for o in outcomes],
    }


@router.get("/order/{order_id}")
async def get_payment_history_endpoint(
    order_id: str,
    payments: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    """
    Get payment attempts for an order, most recent first.

    Example:
        GET /api/payments/order/ord_abc123
    """
    logger.debug(f"Retrieving payment history for order: {order_id}")
    transactions = await payments.get_payment_history(order_id)
    return {
        "order_id": order_id,
        "count": len(transactions),
        "transactions": [t.model_dump(mode="json") for t in transactions],
    }


@router.get("/{transaction_id}")
async def get_payment_endpoint(
    transaction_id: str,
    payments: PaymentService = Depends(get_payment_service)
) -> PaymentTransaction:
    return await payments.get_payment(transaction_id)


@router.post("/{transaction_id}/refund")
async def refund_payment_endpoint(
    transaction_id: str,
    body: RefundRequest = RefundRequest(),
    payments: PaymentService = Depends(get_payment_service),
    orders: OrderService = Depends(get_order_service)
) -> PaymentTransaction:
    """
    Refund a completed payment.

    Returns 404 for an unknown transaction and 409 when the transaction is
    not in the completed state.
    """
    transaction = await payments.refund_payment(transaction_id, body.reason)

    if await orders.get_order(transaction.order_id):
        await orders.update_order_status(transaction.order_id, OrderStatus.REFUNDED)
    return transaction
