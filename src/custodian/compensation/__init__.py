"""Compensation subsystem — balance ledger, asset rails, settlement splits."""

from custodian.compensation.ledger import BalanceLedger
from custodian.compensation.settlement import SettlementCalculator
from custodian.compensation.transfer import AssetRail, InMemoryRail, RailRegistry

__all__ = [
    "AssetRail",
    "BalanceLedger",
    "InMemoryRail",
    "RailRegistry",
    "SettlementCalculator",
]
