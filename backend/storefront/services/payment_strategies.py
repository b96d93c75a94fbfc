"""
Payment Execution Strategies

One strategy per payment method. A strategy checks its preconditions before
anything is persisted, then either settles the payment or raises
StrategyFailureError. Strategies never touch transaction status; only
PaymentService commits state transitions.
"""
import logging
from typing import Any, Dict, Type

from ..exceptions import MissingCredentialError, StrategyFailureError, UnsupportedMethodError
from ..mocks.settlement_gateway import MockSettlementGateway
from ..models.payments import CreatePaymentInput, PaymentMethod, PaymentTransaction

logger = logging.getLogger(__name__)


class PaymentStrategy:
    """Base execution strategy."""

    name = "base"
    approved_statuses = frozenset()

    def __init__(self, gateway: MockSettlementGateway):
        self.gateway = gateway

    def validate(self, payment: CreatePaymentInput) -> None:
        """Raise if the request cannot be executed. Runs before persistence."""

    async def execute(self, transaction: PaymentTransaction, payment: CreatePaymentInput) -> Dict[str, Any]:
        raise NotImplementedError

    def _check(self, transaction: PaymentTransaction, result: Dict[str, Any]) -> Dict[str, Any]:
        if result.get("status") not in self.approved_statuses:
            reason = result.get("decline_reason") or "unknown_error"
            raise StrategyFailureError(
                f"{self.name} declined: {reason}",
                {"transaction_id": transaction.id, "decline_reason": reason}
            )
        logger.debug(f"{self.name} settled {transaction.id}: reference={result.get('reference')}")
        return result


class CardChargeStrategy(PaymentStrategy):
    """Credit and debit cards: charge a tokenized card."""

    name = "Card charge"
    approved_statuses = frozenset({"authorized"})

    def validate(self, payment: CreatePaymentInput) -> None:
        if not payment.card_token or not payment.card_token.strip():
            raise MissingCredentialError(
                "Card token required for card payments",
                {"order_id": payment.order_id, "method": payment.method}
            )

    async def execute(self, transaction: PaymentTransaction, payment: CreatePaymentInput) -> Dict[str, Any]:
        result = await self.gateway.authorize_card(
            payment.card_token,
            transaction.amount,
            transaction.currency,
            metadata={"transaction_id": transaction.id, "order_id": transaction.order_id}
        )
        return self._check(transaction, result)


class RedirectApprovalStrategy(PaymentStrategy):
    """Wallet payments: payer approves on the provider's side."""

    name = "Redirect approval"
    approved_statuses = frozenset({"approved"})

    async def execute(self, transaction: PaymentTransaction, payment: CreatePaymentInput) -> Dict[str, Any]:
        result = await self.gateway.approve_redirect(transaction.id, transaction.amount, transaction.currency)
        return self._check(transaction, result)


class BankTransferStrategy(PaymentStrategy):
    """
    Bank transfers: waits for the bank's settlement confirmation.

    Confirmation is assumed to be available synchronously. Out-of-band
    confirmation would need the PROCESSING state and a callback transition.
    """

    name = "Bank transfer"
    approved_statuses = frozenset({"settled"})

    async def execute(self, transaction: PaymentTransaction, payment: CreatePaymentInput) -> Dict[str, Any]:
        result = await self.gateway.confirm_transfer(transaction.id, transaction.amount, transaction.currency)
        return self._check(transaction, result)


STRATEGY_TYPES: Dict[PaymentMethod, Type[PaymentStrategy]] = {
    PaymentMethod.CREDIT_CARD: CardChargeStrategy,
    PaymentMethod.DEBIT_CARD: CardChargeStrategy,
    PaymentMethod.PAYPAL: RedirectApprovalStrategy,
    PaymentMethod.BANK_TRANSFER: BankTransferStrategy,
}

_unmapped = set(PaymentMethod) - set(STRATEGY_TYPES)
if _unmapped:
    raise RuntimeError(f"Payment methods without a strategy: {sorted(m.value for m in _unmapped)}")


def resolve_method(method: Any) -> PaymentMethod:
    """Map a raw method tag onto PaymentMethod or raise UnsupportedMethodError."""
    try:
        return PaymentMethod(method)
    except ValueError:
        raise UnsupportedMethodError(method) from None


def build_strategies(gateway: MockSettlementGateway) -> Dict[PaymentMethod, PaymentStrategy]:
    """Instantiate one strategy per method, sharing strategy instances per class."""
    instances: Dict[Type[PaymentStrategy], PaymentStrategy] = {}
    strategies = {}
    for method, strategy_type in STRATEGY_TYPES.items():
        if strategy_type not in instances:
            instances[strategy_type] = strategy_type(gateway)
        strategies[method] = instances[strategy_type]
    return strategies
