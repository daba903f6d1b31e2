"""Order lifecycle engine — state machine, order store, timeout claims."""

from custodian.engine.claims import ClaimResolver
from custodian.engine.orders import OrderStore
from custodian.engine.state_machine import OrderAction, OrderStateMachine

__all__ = ["ClaimResolver", "OrderAction", "OrderStateMachine", "OrderStore"]
