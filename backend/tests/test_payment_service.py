import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from storefront.exceptions import (
    InvalidStateTransitionError,
    MissingCredentialError,
    NotFoundError,
    PaymentNotFoundError,
    StrategyFailureError,
    UnsupportedMethodError,
)
from storefront.mocks.settlement_gateway import MockSettlementGateway
from storefront.models.payments import PaymentStatus
from storefront.services.payment_service import PAYMENTS_TABLE, PaymentService
from storefront.services.payment_strategies import PaymentStrategy, build_strategies
from storefront.utils.logger import AuditLogger


# ============================================================================
# process_payment
# ============================================================================

@pytest.mark.asyncio
async def test_card_payment_completes(payment_service, make_payment):
    transaction = await payment_service.process_payment(make_payment())

    assert transaction.id.startswith("txn_")
    assert transaction.status == PaymentStatus.COMPLETED
    assert transaction.completed_at is not None
    assert transaction.completed_at >= transaction.created_at
    assert transaction.error_message is None
    assert transaction.amount == Decimal("100")
    assert transaction.currency == "USD"

    stored = await payment_service.get_payment(transaction.id)
    assert stored == transaction


@pytest.mark.asyncio
@pytest.mark.parametrize("method, card_token", [
    ("debit_card", "tok_debit"),
    ("paypal", None),
    ("bank_transfer", None),
])
async def test_other_methods_complete(payment_service, make_payment, method, card_token):
    transaction = await payment_service.process_payment(
        make_payment(order_id="o-multi", method=method, card_token=card_token)
    )

    assert transaction.status == PaymentStatus.COMPLETED
    assert transaction.method.value == method


@pytest.mark.asyncio
async def test_missing_card_token_creates_no_record(payment_service, make_payment):
    with pytest.raises(MissingCredentialError):
        await payment_service.process_payment(make_payment(order_id="o2", amount="50", card_token=None))

    assert await payment_service.get_payment_history("o2") == []


@pytest.mark.asyncio
async def test_blank_card_token_is_missing(payment_service, make_payment):
    with pytest.raises(MissingCredentialError):
        await payment_service.process_payment(make_payment(order_id="o2", method="debit_card", card_token="   "))

    assert await payment_service.get_payment_history("o2") == []


@pytest.mark.asyncio
async def test_unsupported_method_fails_before_persistence(payment_service, db, make_payment, monkeypatch):
    insert = AsyncMock(wraps=db.insert)
    monkeypatch.setattr(db, "insert", insert)

    with pytest.raises(UnsupportedMethodError) as exc_info:
        await payment_service.process_payment(make_payment(order_id="o3", amount="75", method="bitcoin"))

    assert exc_info.value.error_code == "payment:method:unsupported"
    insert.assert_not_called()
    assert await payment_service.get_payment_history("o3") == []


@pytest.mark.asyncio
async def test_declined_card_is_recorded_as_failed(payment_service, make_payment):
    with pytest.raises(StrategyFailureError) as exc_info:
        await payment_service.process_payment(make_payment(order_id="o4", card_token="tok_decline"))

    assert "insufficient_funds" in exc_info.value.message

    history = await payment_service.get_payment_history("o4")
    assert len(history) == 1
    failed = history[0]
    assert failed.status == PaymentStatus.FAILED
    assert failed.error_message
    assert "insufficient_funds" in failed.error_message
    assert failed.completed_at is None
    assert exc_info.value.details["transaction_id"] == failed.id


@pytest.mark.asyncio
async def test_bank_transfer_above_limit_fails(payment_service, make_payment):
    with pytest.raises(StrategyFailureError):
        await payment_service.process_payment(
            make_payment(order_id="o5", amount="2000000", method="bank_transfer", card_token=None)
        )

    [failed] = await payment_service.get_payment_history("o5")
    assert failed.status == PaymentStatus.FAILED
    assert "amount_exceeds_limit" in failed.error_message


@pytest.mark.asyncio
async def test_retry_after_failure_creates_new_transaction(payment_service, make_payment):
    with pytest.raises(StrategyFailureError):
        await payment_service.process_payment(make_payment(order_id="o6", card_token="tok_decline_expired"))

    retried = await payment_service.process_payment(make_payment(order_id="o6", card_token="tok_new_card"))

    history = await payment_service.get_payment_history("o6")
    assert [t.status for t in history] == [PaymentStatus.COMPLETED, PaymentStatus.FAILED]
    assert history[0].id == retried.id
    assert history[1].id != retried.id


class ExplodingStrategy(PaymentStrategy):
    name = "Exploding"

    async def execute(self, transaction, payment):
        raise ConnectionError("settlement host unreachable")


@pytest.mark.asyncio
async def test_unexpected_strategy_error_is_recorded_and_wrapped(db, make_payment):
    gateway = MockSettlementGateway()
    strategies = build_strategies(gateway)
    for method in list(strategies):
        strategies[method] = ExplodingStrategy(gateway)
    service = PaymentService(db, AuditLogger("test"), gateway, strategies=strategies)

    with pytest.raises(StrategyFailureError) as exc_info:
        await service.process_payment(make_payment(order_id="o7", method="paypal", card_token=None))

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    [failed] = await service.get_payment_history("o7")
    assert failed.status == PaymentStatus.FAILED
    assert failed.error_message == "settlement host unreachable"


@pytest.mark.asyncio
async def test_failure_to_record_decline_keeps_original_error(db, make_payment, monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="test")
    gateway = MockSettlementGateway()
    strategies = {method: ExplodingStrategy(gateway) for method in build_strategies(gateway)}
    service = PaymentService(db, AuditLogger("test"), gateway, strategies=strategies)
    monkeypatch.setattr(db, "update", AsyncMock(side_effect=RuntimeError("database is locked")))

    with pytest.raises(RuntimeError, match="database is locked") as exc_info:
        await service.process_payment(make_payment(order_id="o7b", method="paypal", card_token=None))

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Payment failed") and "settlement host unreachable" in m for m in messages)
    assert any(m.startswith("Could not record failed payment") for m in messages)

    [pending] = await service.get_payment_history("o7b")
    assert pending.status == PaymentStatus.PENDING


def test_amount_beyond_stored_precision_is_rejected(make_payment):
    with pytest.raises(ValidationError):
        make_payment(amount="10.005")

    assert make_payment(amount="10.01").amount == Decimal("10.01")


@pytest.mark.asyncio
async def test_payment_events_are_logged(payment_service, make_payment, caplog):
    caplog.set_level(logging.INFO, logger="storefront")

    transaction = await payment_service.process_payment(make_payment())

    messages = [r.getMessage() for r in caplog.records if r.name == "storefront.payments"]
    assert any(m.startswith("Processing payment") for m in messages)
    assert f"Payment completed order_id=o1 transaction_id={transaction.id}" in messages


# ============================================================================
# refund_payment
# ============================================================================

@pytest.mark.asyncio
async def test_refund_scenario(payment_service, make_payment):
    transaction = await payment_service.process_payment(make_payment())

    refunded = await payment_service.refund_payment(transaction.id, "customer request")
    assert refunded.status == PaymentStatus.REFUNDED
    assert refunded.refund_reason == "customer request"
    assert refunded.refunded_at is not None
    assert refunded.completed_at == transaction.completed_at

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await payment_service.refund_payment(transaction.id)

    assert exc_info.value.current == "refunded"
    assert exc_info.value.target == "refunded"
    assert (await payment_service.get_payment(transaction.id)) == refunded


@pytest.mark.asyncio
async def test_refund_of_failed_transaction_does_not_mutate(payment_service, db, make_payment, monkeypatch):
    with pytest.raises(StrategyFailureError):
        await payment_service.process_payment(make_payment(order_id="o8", card_token="tok_decline_fraud"))
    [failed] = await payment_service.get_payment_history("o8")

    update = AsyncMock(wraps=db.update)
    monkeypatch.setattr(db, "update", update)

    with pytest.raises(InvalidStateTransitionError):
        await payment_service.refund_payment(failed.id)

    update.assert_not_called()
    assert await payment_service.get_payment(failed.id) == failed


@pytest.mark.asyncio
async def test_refund_unknown_transaction(payment_service, db, monkeypatch):
    update = AsyncMock(wraps=db.update)
    insert = AsyncMock(wraps=db.insert)
    monkeypatch.setattr(db, "update", update)
    monkeypatch.setattr(db, "insert", insert)

    with pytest.raises(PaymentNotFoundError) as exc_info:
        await payment_service.refund_payment("txn_doesnotexist0000")

    assert isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.status_code == 404
    update.assert_not_called()
    insert.assert_not_called()


@pytest.mark.asyncio
async def test_refund_loses_race_to_concurrent_writer(payment_service, db, gateway, make_payment, monkeypatch):
    transaction = await payment_service.process_payment(make_payment())

    async def refund_elsewhere(transaction_id, amount, currency):
        # Another writer refunds the same transaction while settlement is in flight
        await db.update(PAYMENTS_TABLE, transaction_id, {"status": PaymentStatus.REFUNDED.value})
        return {"status": "refunded", "reference": "rfnd_other"}

    monkeypatch.setattr(gateway, "refund", refund_elsewhere)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await payment_service.refund_payment(transaction.id, "duplicate")

    assert exc_info.value.details["reason"] == "concurrent_update"
    stored = await payment_service.get_payment(transaction.id)
    assert stored.status == PaymentStatus.REFUNDED
    assert stored.refund_reason is None


# ============================================================================
# refund_payments (batch)
# ============================================================================

class CountingGateway(MockSettlementGateway):
    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def refund(self, transaction_id, amount, currency):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return await super().refund(transaction_id, amount, currency)


@pytest.mark.asyncio
async def test_batch_refund_is_bounded_and_ordered(db, make_payment):
    gateway = CountingGateway()
    service = PaymentService(db, AuditLogger("test"), gateway, refund_concurrency=2)

    completed = [
        await service.process_payment(make_payment(order_id=f"batch-{i}"))
        for i in range(5)
    ]
    with pytest.raises(StrategyFailureError):
        await service.process_payment(make_payment(order_id="batch-failed", card_token="tok_decline"))
    [failed] = await service.get_payment_history("batch-failed")

    ids = [completed[0].id, failed.id, "txn_missing0000000", *(t.id for t in completed[1:])]
    outcomes = await service.refund_payments(ids, reason="recall")

    assert [o.transaction_id for o in outcomes] == ids
    assert [o.succeeded for o in outcomes] == [True, False, False, True, True, True, True]
    assert outcomes[1].error_code == "payment:state:invalid_transition"
    assert outcomes[2].error_code == "payment:not_found"
    assert all(o.transaction.status == PaymentStatus.REFUNDED for o in outcomes if o.succeeded)
    assert 1 <= gateway.max_in_flight <= 2


@pytest.mark.asyncio
async def test_batch_refund_deduplicates_ids(payment_service, make_payment):
    transaction = await payment_service.process_payment(make_payment())

    outcomes = await payment_service.refund_payments([transaction.id, transaction.id])

    assert len(outcomes) == 2
    assert all(o.succeeded for o in outcomes)


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -1])
async def test_batch_refund_rejects_bad_concurrency(payment_service, gateway, make_payment, monkeypatch, limit):
    transaction = await payment_service.process_payment(make_payment())
    refund = AsyncMock(wraps=gateway.refund)
    monkeypatch.setattr(gateway, "refund", refund)

    with pytest.raises(ValueError):
        await payment_service.refund_payments([transaction.id], max_concurrency=limit)

    refund.assert_not_called()
    assert (await payment_service.get_payment(transaction.id)).status == PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_batch_refund_explicit_concurrency_overrides_default(db, make_payment):
    gateway = CountingGateway()
    service = PaymentService(db, AuditLogger("test"), gateway, refund_concurrency=5)
    ids = [(await service.process_payment(make_payment(order_id=f"serial-{i}"))).id for i in range(3)]

    outcomes = await service.refund_payments(ids, max_concurrency=1)

    assert all(o.succeeded for o in outcomes)
    assert gateway.max_in_flight == 1


# ============================================================================
# get_payment_history
# ============================================================================

@pytest.mark.asyncio
async def test_history_empty_for_unknown_order(payment_service):
    assert await payment_service.get_payment_history("no-such-order") == []


@pytest.mark.asyncio
async def test_history_is_most_recent_first_and_stable(payment_service, make_payment):
    first = await payment_service.process_payment(make_payment(order_id="o9", method="paypal", card_token=None))
    second = await payment_service.process_payment(make_payment(order_id="o9"))
    third = await payment_service.process_payment(make_payment(order_id="o9", method="bank_transfer", card_token=None))
    await payment_service.process_payment(make_payment(order_id="other"))

    history = await payment_service.get_payment_history("o9")
    assert [t.id for t in history] == [third.id, second.id, first.id]
    assert await payment_service.get_payment_history("o9") == history


@pytest.mark.asyncio
async def test_history_breaks_timestamp_ties_by_insertion(payment_service, make_payment, monkeypatch):
    frozen = datetime(2025, 10, 17, 14, 35)
    monkeypatch.setattr("storefront.services.payment_service.utcnow", lambda: frozen)

    ids = [
        (await payment_service.process_payment(make_payment(order_id="o-tie", method="paypal", card_token=None))).id
        for _ in range(5)
    ]

    history = await payment_service.get_payment_history("o-tie")
    assert all(t.created_at == frozen for t in history)
    assert [t.id for t in history] == ids[::-1]
