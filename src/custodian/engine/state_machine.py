"""Order state machine — enforces the exact lifecycle transitions.

Transitions are keyed by the operation that requests them, not just by
(from, to): ESCALATED → RESOLVED is legal through a vote or a seller
agreement but not through a buyer confirmation, so a plain edge set is
not enough.

    operation       from                                   to
    confirm         PAID, REFUND_ASKED, REFUND_REFUSED     RESOLVED
    ask_refund      PAID, REFUND_ASKED                     REFUND_ASKED
    cancel_refund   REFUND_ASKED, REFUND_REFUSED           PAID
    refuse_refund   REFUND_ASKED                           REFUND_REFUSED
    escalate        REFUND_REFUSED                         ESCALATED
    seller_agree    REFUND_ASKED, REFUND_REFUSED, ESCALATED RESOLVED
    vote            ESCALATED                              ESCALATED | RESOLVED
    seller_claim    PAID                                   RESOLVED
    buyer_claim     REFUND_ASKED                           RESOLVED

Fail-closed: an operation attempted from any other state raises
InvalidStateTransition. RESOLVED has no outgoing transitions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from custodian.errors import InvalidStateTransition
from custodian.models.escrow import Order, OrderStatus


class OrderAction(str, enum.Enum):
    """Operations that move an order through its lifecycle."""
    CONFIRM = "confirm"
    ASK_REFUND = "ask_refund"
    CANCEL_REFUND = "cancel_refund"
    REFUSE_REFUND = "refuse_refund"
    ESCALATE = "escalate"
    SELLER_AGREE = "seller_agree"
    VOTE = "vote"
    SELLER_CLAIM = "seller_claim"
    BUYER_CLAIM = "buyer_claim"


@dataclass(frozen=True)
class _Rule:
    sources: frozenset[OrderStatus]
    target: OrderStatus


_RULES: dict[OrderAction, _Rule] = {
    OrderAction.CONFIRM: _Rule(
        frozenset({OrderStatus.PAID, OrderStatus.REFUND_ASKED, OrderStatus.REFUND_REFUSED}),
        OrderStatus.RESOLVED,
    ),
    OrderAction.ASK_REFUND: _Rule(
        frozenset({OrderStatus.PAID, OrderStatus.REFUND_ASKED}),
        OrderStatus.REFUND_ASKED,
    ),
    OrderAction.CANCEL_REFUND: _Rule(
        frozenset({OrderStatus.REFUND_ASKED, OrderStatus.REFUND_REFUSED}),
        OrderStatus.PAID,
    ),
    OrderAction.REFUSE_REFUND: _Rule(
        frozenset({OrderStatus.REFUND_ASKED}),
        OrderStatus.REFUND_REFUSED,
    ),
    OrderAction.ESCALATE: _Rule(
        frozenset({OrderStatus.REFUND_REFUSED}),
        OrderStatus.ESCALATED,
    ),
    OrderAction.SELLER_AGREE: _Rule(
        frozenset({OrderStatus.REFUND_ASKED, OrderStatus.REFUND_REFUSED, OrderStatus.ESCALATED}),
        OrderStatus.RESOLVED,
    ),
    # A vote that does not settle leaves the order ESCALATED; the engine
    # applies RESOLVED only when the panel decides.
    OrderAction.VOTE: _Rule(
        frozenset({OrderStatus.ESCALATED}),
        OrderStatus.RESOLVED,
    ),
    OrderAction.SELLER_CLAIM: _Rule(
        frozenset({OrderStatus.PAID}),
        OrderStatus.RESOLVED,
    ),
    OrderAction.BUYER_CLAIM: _Rule(
        frozenset({OrderStatus.REFUND_ASKED}),
        OrderStatus.RESOLVED,
    ),
}


class OrderStateMachine:
    """Validates and applies order transitions.

    Pure computation: side effects (ledger credits, events) are the
    service layer's job.
    """

    @staticmethod
    def permits(status: OrderStatus, action: OrderAction) -> bool:
        return status in _RULES[action].sources

    @staticmethod
    def require(order: Order, action: OrderAction) -> None:
        """Raise InvalidStateTransition unless ``action`` is legal now."""
        rule = _RULES[action]
        if order.status not in rule.sources:
            allowed = ", ".join(s.name for s in sorted(rule.sources))
            raise InvalidStateTransition(
                f"Cannot {action.value} order {order.order_id} in state "
                f"{order.status.name}. Allowed from: [{allowed}]"
            )

    @staticmethod
    def apply(order: Order, action: OrderAction) -> OrderStatus:
        """Validate and move the order to the action's target state."""
        OrderStateMachine.require(order, action)
        order.status = _RULES[action].target
        return order.status

    @staticmethod
    def is_terminal(status: OrderStatus) -> bool:
        return status == OrderStatus.RESOLVED

    @staticmethod
    def actions_from(status: OrderStatus) -> set[OrderAction]:
        """Operations that are legal from ``status``."""
        return {a for a, r in _RULES.items() if status in r.sources}
