"""Escrow models — apps, orders, disputes, vote tallies, settlements.

All monetary values are integers in the asset's smallest unit and every
percentage split uses truncating integer division. There are no floats
and no Decimal rounding modes anywhere in settlement: the same inputs
always produce the same credits, bit for bit.

Order lifecycle:
    PAID → REFUND_ASKED → REFUND_REFUSED → ESCALATED → RESOLVED
    PAID / REFUND_ASKED / REFUND_REFUSED → RESOLVED   (buyer confirms)
    REFUND_ASKED / REFUND_REFUSED → PAID              (buyer cancels)
    PAID / REFUND_ASKED → RESOLVED                    (timeout claims)

RESOLVED is terminal. Orders are never deleted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class OrderStatus(int, enum.Enum):
    """Lifecycle state of an escrowed order.

    The integer values are part of the external contract (events,
    scenario files) and must not be renumbered.
    """
    PAID = 1
    REFUND_ASKED = 2
    RESOLVED = 3
    REFUND_REFUSED = 4
    ESCALATED = 5


class Vote(int, enum.Enum):
    """A moderator seat's recorded vote on a refund request."""
    NOT_VOTED = 0
    AGREE = 1
    DISAGREE = 2

    def opposite(self) -> Vote:
        if self == Vote.AGREE:
            return Vote.DISAGREE
        if self == Vote.DISAGREE:
            return Vote.AGREE
        return Vote.NOT_VOTED


class Resolution(str, enum.Enum):
    """How an order reached RESOLVED."""
    CONFIRMED = "confirmed"
    SELLER_AGREED = "seller_agreed"
    VOTE_REFUND = "vote_refund"
    VOTE_RELEASE = "vote_release"
    SELLER_CLAIMED = "seller_claimed"
    BUYER_CLAIMED = "buyer_claimed"


@dataclass
class App:
    """A tenant configuration scoping orders, commissions and windows.

    Mutable only through AppRegistry, which validates every bounded
    field on write.
    """
    app_id: int
    owner: str
    name: str
    uri: str
    dispute_window_seconds: int
    refuse_window_seconds: int
    claim_window_seconds: int
    moderator_commission_pct: int
    owner_commission_pct: int
    created_utc: Optional[datetime] = None


@dataclass
class Order:
    """One escrowed payment from buyer to seller under an app."""
    order_id: int
    app_id: int
    asset: str
    amount: int
    buyer: str
    seller: str
    payer: str
    created_utc: datetime
    claim_deadline_utc: datetime
    primary_moderator_id: int
    status: OrderStatus = OrderStatus.PAID
    resolution: Optional[Resolution] = None
    resolved_utc: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status == OrderStatus.RESOLVED


@dataclass
class Dispute:
    """Refund negotiation attached to an order once a refund is asked.

    refund_amount and secondary_moderator_id are overwritten in place by
    repeated refund requests while the order status permits.
    """
    order_id: int
    refund_amount: int
    secondary_moderator_id: int
    refuse_deadline_utc: datetime
    opened_utc: datetime


@dataclass
class VoteTally:
    """Per-seat votes for one order. Frozen history once resolved."""
    order_id: int
    primary_vote: Vote = Vote.NOT_VOTED
    secondary_vote: Vote = Vote.NOT_VOTED


@dataclass(frozen=True)
class Credit:
    """A single ledger credit produced by settlement."""
    participant: str
    amount: int
    role: str


@dataclass(frozen=True)
class SettlementBreakdown:
    """Full breakdown of how an order's amount was distributed.

    Invariant: sum(credit amounts) + dust == amount, with dust bounded by
    the number of truncating divisions performed.
    """
    order_id: int
    resolution: Resolution
    amount: int
    owner_commission_pct: int
    moderator_commission_pct: int
    seats_involved: int
    credits: tuple[Credit, ...] = field(default_factory=tuple)

    @property
    def total_credited(self) -> int:
        return sum(c.amount for c in self.credits)

    @property
    def dust(self) -> int:
        return self.amount - self.total_credited

    def credited_to(self, participant: str) -> int:
        return sum(c.amount for c in self.credits if c.participant == participant)
