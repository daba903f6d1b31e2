"""Registries the escrow engine reads from — apps and moderators."""

from custodian.registry.apps import AppRegistry
from custodian.registry.moderators import (
    ModeratorRegistry,
    ModeratorReputation,
    ModeratorRoster,
)

__all__ = [
    "AppRegistry",
    "ModeratorRegistry",
    "ModeratorReputation",
    "ModeratorRoster",
]
