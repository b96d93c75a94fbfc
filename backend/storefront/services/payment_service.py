"""
Payment Service

Owns the payment transaction lifecycle: creates a pending record for every
payment attempt, dispatches it to the method's execution strategy, and
commits the resulting transition (completed / failed / refunded).

Guarantees:
- Validation errors are raised before any record exists
- Strategy failures are committed as failed, then re-raised
- Not-found and invalid-transition errors never write
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

from ..db.client import INSERTION_ORDER, DatabaseClient, RecordNotFoundError, StaleRecordError
from ..db.models import PaymentTransactionModel, utcnow
from ..exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    StorefrontError,
    StrategyFailureError,
)
from ..mocks.settlement_gateway import MockSettlementGateway
from ..models.payments import (
    CreatePaymentInput,
    PaymentStatus,
    PaymentTransaction,
    RefundOutcome,
)
from ..utils.logger import AuditLogger
from .payment_state import assert_payment_transition
from .payment_strategies import PaymentStrategy, build_strategies, resolve_method

PAYMENTS_TABLE = PaymentTransactionModel.__tablename__

DEFAULT_REFUND_CONCURRENCY = 5


class PaymentService:
    """
    Payment processor.

    Args:
        db: Data store holding payment_transactions
        logger: Audit logger for payment events
        gateway: Settlement party the strategies talk to
        strategies: Optional method -> strategy override (tests, new gateways)
        refund_concurrency: Worker limit for refund_payments
    """

    def __init__(
        self,
        db: DatabaseClient,
        logger: AuditLogger,
        gateway: MockSettlementGateway,
        strategies: Optional[Dict[Any, PaymentStrategy]] = None,
        refund_concurrency: int = DEFAULT_REFUND_CONCURRENCY
    ):
        self.db = db
        self.logger = logger
        self.gateway = gateway
        self.strategies = strategies or build_strategies(gateway)
        self.refund_concurrency = refund_concurrency

    # ========================================================================
    # Payment Processing
    # ========================================================================

    async def process_payment(self, payment: CreatePaymentInput) -> PaymentTransaction:
        """
        Process a payment for an order.

        Args:
            payment: Order ID, amount, currency, method and optional card token

        Returns:
            The completed PaymentTransaction

        Raises:
            UnsupportedMethodError: Unknown method (nothing persisted)
            MissingCredentialError: Card payment without token (nothing persisted)
            StrategyFailureError: Charge rejected; transaction left failed
        """
        method = resolve_method(payment.method)
        strategy = self.strategies[method]
        strategy.validate(payment)

        self.logger.info(
            "Processing payment",
            order_id=payment.order_id,
            amount=payment.amount,
            method=method.value
        )

        record = await self.db.insert(PAYMENTS_TABLE, {
            "order_id": payment.order_id,
            "amount": payment.amount,
            "currency": payment.currency,
            "method": method.value,
            "status": PaymentStatus.PENDING.value,
            "created_at": utcnow(),
        })
        transaction = PaymentTransaction.model_validate(record)

        try:
            await strategy.execute(transaction, payment)
        except Exception as e:
            message = str(e) or type(e).__name__
            self.logger.warning(
                "Payment failed",
                transaction_id=transaction.id,
                order_id=transaction.order_id,
                error=message
            )
            try:
                await self._transition(transaction, PaymentStatus.FAILED, {"error_message": message})
            except Exception as record_error:
                self.logger.error(
                    "Could not record failed payment",
                    error=record_error,
                    transaction_id=transaction.id
                )
                raise record_error from e

            if isinstance(e, StorefrontError):
                raise
            raise StrategyFailureError(message, {"transaction_id": transaction.id}) from e

        completed = await self._transition(transaction, PaymentStatus.COMPLETED, {"completed_at": utcnow()})
        self.logger.info("Payment completed", transaction_id=completed.id, order_id=completed.order_id)
        return completed

    # ========================================================================
    # Refunds
    # ========================================================================

    async def refund_payment(self, transaction_id: str, reason: Optional[str] = None) -> PaymentTransaction:
        """
        Refund a completed payment.

        Args:
            transaction_id: Transaction to refund
            reason: Optional reason, stored on the record

        Returns:
            The refunded PaymentTransaction

        Raises:
            PaymentNotFoundError: No such transaction
            InvalidStateTransitionError: Transaction is not completed
        """
        self.logger.info("Processing refund", transaction_id=transaction_id, reason=reason)

        transaction = await self.get_payment(transaction_id)
        assert_payment_transition(transaction.status, PaymentStatus.REFUNDED)

        await self.gateway.refund(transaction.id, transaction.amount, transaction.currency)

        refunded = await self._transition(
            transaction,
            PaymentStatus.REFUNDED,
            {"refunded_at": utcnow(), "refund_reason": reason}
        )
        self.logger.info("Refund completed", transaction_id=refunded.id, order_id=refunded.order_id)
        return refunded

    async def refund_payments(
        self,
        transaction_ids: Sequence[str],
        reason: Optional[str] = None,
        max_concurrency: Optional[int] = None
    ) -> List[RefundOutcome]:
        """
        Refund several transactions with at most max_concurrency in flight.

        Each refund succeeds or fails on its own; outcomes come back in the
        order of transaction_ids. Duplicate IDs are refunded once.
        """
        limit = self.refund_concurrency if max_concurrency is None else max_concurrency
        if limit < 1:
            raise ValueError("max_concurrency must be at least 1")

        unique_ids = list(dict.fromkeys(transaction_ids))
        semaphore = asyncio.Semaphore(limit)

        async def refund_one(transaction_id: str) -> RefundOutcome:
            async with semaphore:
                try:
                    transaction = await self.refund_payment(transaction_id, reason)
                    return RefundOutcome(transaction_id=transaction_id, transaction=transaction)
                except StorefrontError as e:
                    self.logger.warning("Batch refund item failed", transaction_id=transaction_id, error=e.error_code)
                    return RefundOutcome(
                        transaction_id=transaction_id,
                        error_code=e.error_code,
                        error_message=e.message
                    )

        outcomes = await asyncio.gather(*(refund_one(tid) for tid in unique_ids))
        by_id = {outcome.transaction_id: outcome for outcome in outcomes}

        self.logger.info(
            "Batch refund finished",
            requested=len(unique_ids),
            refunded=sum(1 for o in outcomes if o.succeeded)
        )
        return [by_id[tid] for tid in transaction_ids]

    # ========================================================================
    # Retrieval
    # ========================================================================

    async def get_payment(self, transaction_id: str) -> PaymentTransaction:
        record = await self.db.find_by_id(PAYMENTS_TABLE, transaction_id)
        if record is None:
            raise PaymentNotFoundError(transaction_id)
        return PaymentTransaction.model_validate(record)

    async def get_payment_history(self, order_id: str) -> List[PaymentTransaction]:
        """
        Get payment history for an order.

        Returns:
            List of transactions (most recent first); empty if none.
            Attempts sharing a created_at come back latest-inserted first.
        """
        records = await self.db.find_many(
            PAYMENTS_TABLE,
            {"order_id": order_id},
            order_by=[("created_at", "desc"), (INSERTION_ORDER, "desc")]
        )
        return [PaymentTransaction.model_validate(r) for r in records]

    # ========================================================================
    # State Transitions
    # ========================================================================

    async def _transition(
        self,
        transaction: PaymentTransaction,
        target: PaymentStatus,
        changes: Dict[str, Any]
    ) -> PaymentTransaction:
        """
        Commit a status transition.

        The update is conditional on the status the caller observed, so a
        concurrent writer that moved the record first makes this raise
        InvalidStateTransitionError instead of overwriting it.
        """
        assert_payment_transition(transaction.status, target)

        try:
            record = await self.db.update(
                PAYMENTS_TABLE,
                transaction.id,
                {"status": target.value, **changes},
                expected={"status": transaction.status.value}
            )
        except RecordNotFoundError:
            raise PaymentNotFoundError(transaction.id) from None
        except StaleRecordError:
            current = await self.get_payment(transaction.id)
            raise InvalidStateTransitionError(
                current.status.value,
                target.value,
                {"transaction_id": transaction.id, "reason": "concurrent_update"}
            ) from None

        self.logger.debug(
            "Transaction transitioned",
            transaction_id=transaction.id,
            from_status=transaction.status.value,
            to_status=target.value
        )
        return PaymentTransaction.model_validate(record)
