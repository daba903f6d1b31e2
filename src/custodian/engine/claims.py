"""Claim resolver — timeout settlement when a counterparty goes quiet.

Two paths, both independent of the vote engine:

- Seller claim: the order is still PAID and the claim deadline has
  passed. The seller takes the amount net of owner commission.
- Buyer claim: the order is REFUND_ASKED and the seller let the refuse
  deadline pass without refusing. The buyer takes the refund net of
  owner commission; any remainder goes to the seller at the same rate.

Deadlines are strict: a claim at exactly the deadline is too early.
The caller decides the path; the state decides whether it is open.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from custodian.compensation.settlement import SettlementCalculator
from custodian.engine.state_machine import OrderAction, OrderStateMachine
from custodian.errors import DeadlineNotReached, InvalidStateTransition, Unauthorized
from custodian.models.escrow import App, Dispute, Order, SettlementBreakdown


@dataclass(frozen=True)
class ClaimDecision:
    """Which side claimed and what it settles to."""
    order_id: int
    claimant: str
    action: OrderAction
    breakdown: SettlementBreakdown


class ClaimResolver:
    """Validates timeout claims and computes their settlement.

    Pure with respect to order state: the caller applies the transition
    and credits on success.
    """

    def __init__(self, calculator: SettlementCalculator) -> None:
        self._calculator = calculator

    def resolve(
        self,
        order: Order,
        dispute: Optional[Dispute],
        app: App,
        caller: str,
        now: datetime,
    ) -> ClaimDecision:
        if caller == order.seller:
            return self._seller_claim(order, app, caller, now)
        if caller == order.buyer:
            return self._buyer_claim(order, dispute, app, caller, now)
        raise Unauthorized(
            f"Only the buyer or seller of order {order.order_id} can claim it"
        )

    def _seller_claim(
        self, order: Order, app: App, caller: str, now: datetime,
    ) -> ClaimDecision:
        OrderStateMachine.require(order, OrderAction.SELLER_CLAIM)
        if not now > order.claim_deadline_utc:
            raise DeadlineNotReached(
                f"Order {order.order_id} claim deadline "
                f"{order.claim_deadline_utc.isoformat()} has not passed"
            )
        return ClaimDecision(
            order_id=order.order_id,
            claimant=caller,
            action=OrderAction.SELLER_CLAIM,
            breakdown=self._calculator.seller_claimed(order, app),
        )

    def _buyer_claim(
        self,
        order: Order,
        dispute: Optional[Dispute],
        app: App,
        caller: str,
        now: datetime,
    ) -> ClaimDecision:
        OrderStateMachine.require(order, OrderAction.BUYER_CLAIM)
        if dispute is None:
            raise InvalidStateTransition(
                f"Order {order.order_id} has no refund request to claim"
            )
        if not now > dispute.refuse_deadline_utc:
            raise DeadlineNotReached(
                f"Order {order.order_id} refuse deadline "
                f"{dispute.refuse_deadline_utc.isoformat()} has not passed"
            )
        return ClaimDecision(
            order_id=order.order_id,
            claimant=caller,
            action=OrderAction.BUYER_CLAIM,
            breakdown=self._calculator.buyer_claimed(order, app, dispute.refund_amount),
        )
