"""Order store — the single source of truth for order lifecycle state.

Orders, their disputes and their vote tallies live here behind integer
handles. Records are append-only: nothing is ever deleted, resolved
orders stay as the settlement trail.

Each order owns a re-entrant lock. Every operation that reads and then
mutates an order runs inside ``with store.locked(order_id)`` so that at
most one state transition per order is ever in flight. Operations on
different orders do not contend.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from custodian.errors import UnknownOrder
from custodian.models.escrow import Dispute, Order, OrderStatus, VoteTally


class OrderStore:
    """In-memory arena of orders, disputes and vote tallies.

    Usage:
        store = OrderStore()
        order = store.create_order(app_id=1, asset="native", ...)
        with store.locked(order.order_id):
            ...
    """

    def __init__(self) -> None:
        self._orders: dict[int, Order] = {}
        self._disputes: dict[int, Dispute] = {}
        self._tallies: dict[int, VoteTally] = {}
        self._locks: dict[int, threading.RLock] = {}
        self._create_lock = threading.Lock()

    def create_order(
        self,
        app_id: int,
        asset: str,
        amount: int,
        buyer: str,
        seller: str,
        payer: str,
        primary_moderator_id: int,
        claim_window_seconds: int,
        now: datetime,
    ) -> Order:
        """Create an order in PAID with the next handle."""
        with self._create_lock:
            order_id = len(self._orders) + 1
            order = Order(
                order_id=order_id,
                app_id=app_id,
                asset=asset,
                amount=amount,
                buyer=buyer,
                seller=seller,
                payer=payer,
                created_utc=now,
                claim_deadline_utc=now + timedelta(seconds=claim_window_seconds),
                primary_moderator_id=primary_moderator_id,
                status=OrderStatus.PAID,
            )
            self._orders[order_id] = order
            self._tallies[order_id] = VoteTally(order_id=order_id)
            self._locks[order_id] = threading.RLock()
        return order

    @contextmanager
    def locked(self, order_id: int) -> Iterator[Order]:
        """Serialize operations on one order. Yields the order."""
        lock = self._locks.get(order_id)
        if lock is None:
            raise UnknownOrder(f"Unknown order ID: {order_id}")
        with lock:
            yield self._orders[order_id]

    def get_order(self, order_id: int) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise UnknownOrder(f"Unknown order ID: {order_id}")
        return order

    def get_dispute(self, order_id: int) -> Optional[Dispute]:
        return self._disputes.get(order_id)

    def get_tally(self, order_id: int) -> VoteTally:
        self.get_order(order_id)
        return self._tallies[order_id]

    def put_dispute(
        self,
        order_id: int,
        refund_amount: int,
        secondary_moderator_id: int,
        refuse_deadline_utc: datetime,
        now: datetime,
    ) -> Dispute:
        """Create the dispute, or overwrite its negotiable fields in place."""
        self.get_order(order_id)
        dispute = self._disputes.get(order_id)
        if dispute is None:
            dispute = Dispute(
                order_id=order_id,
                refund_amount=refund_amount,
                secondary_moderator_id=secondary_moderator_id,
                refuse_deadline_utc=refuse_deadline_utc,
                opened_utc=now,
            )
            self._disputes[order_id] = dispute
        else:
            dispute.refund_amount = refund_amount
            dispute.secondary_moderator_id = secondary_moderator_id
            dispute.refuse_deadline_utc = refuse_deadline_utc
        return dispute

    def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        with self._create_lock:
            orders = [self._orders[k] for k in sorted(self._orders)]
        if status is None:
            return orders
        return [o for o in orders if o.status == status]

    def open_value(self, asset: str) -> int:
        """Value still escrowed in unresolved orders for ``asset``."""
        with self._create_lock:
            orders = list(self._orders.values())
        return sum(
            o.amount for o in orders
            if o.asset == asset and o.status != OrderStatus.RESOLVED
        )

    @property
    def count(self) -> int:
        return len(self._orders)
