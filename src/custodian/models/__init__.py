"""Core data models for Custodian."""

from custodian.models.escrow import (
    App,
    Credit,
    Dispute,
    Order,
    OrderStatus,
    Resolution,
    SettlementBreakdown,
    Vote,
    VoteTally,
)

__all__ = [
    "App",
    "Credit",
    "Dispute",
    "Order",
    "OrderStatus",
    "Resolution",
    "SettlementBreakdown",
    "Vote",
    "VoteTally",
]
