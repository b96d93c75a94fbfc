"""
Mock Settlement Gateway

Simulates the external party that moves funds for each payment method.
Deterministic test tokens and limits make every outcome reproducible.

Mock Behavior:
- Special tokens (tok_decline*) always decline with a fixed reason
- Amounts above max_amount always decline
- With simulate_declines on, ~10% of card charges decline based on a
  deterministic hash of token + amount
- Refunds always succeed
"""
import asyncio
import hashlib
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Optional


# Test tokens that trigger specific behaviors
DECLINE_TOKENS = {
    "tok_decline": "insufficient_funds",
    "tok_decline_fraud": "fraud_suspected",
    "tok_decline_expired": "card_expired",
    "tok_decline_invalid": "invalid_card",
}

MAX_AMOUNT = Decimal("1000000")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _reference(prefix: str, *parts: Any) -> str:
    digest = hashlib.sha256(":".join(str(p) for p in parts).encode()).hexdigest()[:12]
    return f"{prefix}_{digest}"


class MockSettlementGateway:
    """
    Settlement party for card, redirect and bank-transfer payments.

    Args:
        simulate_declines: Enable the hash-based ~10% card decline rate
        latency: Seconds each call sleeps, to exercise real suspension points
        max_amount: Largest amount any method settles
    """

    def __init__(
        self,
        simulate_declines: bool = False,
        latency: float = 0.0,
        max_amount: Decimal = MAX_AMOUNT
    ):
        self.simulate_declines = simulate_declines
        self.latency = latency
        self.max_amount = max_amount

    async def _pause(self) -> None:
        await asyncio.sleep(self.latency)

    def _declined(self, reason: str, amount: Decimal, currency: str) -> Dict[str, Any]:
        return {
            "status": "declined",
            "reference": None,
            "decline_reason": reason,
            "processed_at": _now(),
            "amount": str(amount),
            "currency": currency,
        }

    def _approved(self, status: str, reference: str, amount: Decimal, currency: str) -> Dict[str, Any]:
        return {
            "status": status,
            "reference": reference,
            "decline_reason": None,
            "processed_at": _now(),
            "amount": str(amount),
            "currency": currency,
        }

    async def authorize_card(
        self,
        card_token: str,
        amount: Decimal,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Charge a tokenized card.

        Returns:
            Result dict with status "authorized" or "declined",
            reference (auth code) and decline_reason
        """
        await self._pause()

        if card_token in DECLINE_TOKENS:
            return self._declined(DECLINE_TOKENS[card_token], amount, currency)
        if amount > self.max_amount:
            return self._declined("amount_exceeds_limit", amount, currency)

        if self.simulate_declines:
            hash_input = f"{card_token}:{amount}:{currency}"
            hash_value = int(hashlib.sha256(hash_input.encode()).hexdigest()[:8], 16)
            if hash_value % 10 == 0:
                decline_reasons = ["insufficient_funds", "do_not_honor", "generic_decline"]
                return self._declined(decline_reasons[hash_value % len(decline_reasons)], amount, currency)

        return self._approved("authorized", _reference("auth", card_token, amount, _now()), amount, currency)

    async def approve_redirect(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str
    ) -> Dict[str, Any]:
        """Redirect the payer to the wallet provider and collect the approval."""
        await self._pause()

        if amount > self.max_amount:
            return self._declined("amount_exceeds_limit", amount, currency)
        return self._approved("approved", _reference("wallet", transaction_id, amount), amount, currency)

    async def confirm_transfer(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str
    ) -> Dict[str, Any]:
        """Wait for the bank to confirm settlement of an inbound transfer."""
        await self._pause()

        if amount > self.max_amount:
            return self._declined("amount_exceeds_limit", amount, currency)
        return self._approved("settled", _reference("xfer", transaction_id, amount), amount, currency)

    async def refund(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str
    ) -> Dict[str, Any]:
        """Return funds for a settled transaction. Always succeeds."""
        await self._pause()
        return self._approved("refunded", _reference("rfnd", transaction_id, amount), amount, currency)

    def get_status(self) -> Dict[str, Any]:
        """Settlement availability for health checks."""
        return {
            "status": "operational",
            "simulate_declines": self.simulate_declines,
            "max_amount": str(self.max_amount),
        }
