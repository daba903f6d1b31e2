"""Custodian service — unified facade for the escrow engine.

This is the primary interface for programmatic access to Custodian.
It orchestrates all subsystems:
- App registry (tenant commission rates and windows)
- Order lifecycle (pay, confirm, refund negotiation, escalation)
- Dispute voting (moderator seats, app-owner tie-break)
- Timeout claims (seller after the claim deadline, buyer after the
  refuse deadline)
- Ledger (credits on settlement, withdrawals through asset rails)
- Audit (event log, custody reconciliation)

Every operation validates the caller before the order state, then the
arguments, and only then mutates anything; a rejected call leaves no
trace. Every state change is recorded in the event log. Operations on
one order run under that order's lock, so at most one transition per
order is in flight.

All operations return a ServiceResult. Engine components raise the
EscrowError family; the facade converts those into failures carrying a
stable error_code.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from custodian.compensation.ledger import BalanceLedger
from custodian.compensation.settlement import SettlementCalculator
from custodian.compensation.transfer import RailRegistry
from custodian.engine.claims import ClaimResolver
from custodian.engine.orders import OrderStore
from custodian.engine.state_machine import OrderAction, OrderStateMachine
from custodian.errors import (
    DeadlineExpired,
    EscrowError,
    InvalidArgument,
    Unauthorized,
)
from custodian.legal.dispute import DisputeEngine
from custodian.models.escrow import (
    App,
    Order,
    OrderStatus,
    SettlementBreakdown,
    Vote,
)
from custodian.persistence.event_log import EventKind, EventLog, EventRecord
from custodian.policy.resolver import PolicyResolver
from custodian.registry.apps import AppRegistry
from custodian.registry.moderators import ModeratorRegistry


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


class EscrowService:
    """Unified escrow engine facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        rails = RailRegistry()
        rails.register_rail(InMemoryRail("native"))
        service = EscrowService(resolver, ModeratorRoster(), rails)

        app = service.register_app(owner="alice", name="Shop", uri="https://shop")
        order = service.pay_order("bob", app.data["app_id"], "bob", "carol",
                                  "native", 1000, primary_moderator_id=1, value=1000)
        service.confirm_done(order.data["order_id"], "bob")
        service.withdraw("carol", "native", 1000)
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        moderators: ModeratorRegistry,
        rails: RailRegistry,
        event_log: Optional[EventLog] = None,
    ) -> None:
        if not isinstance(moderators, ModeratorRegistry):
            raise TypeError(
                f"moderators must implement ModeratorRegistry, got {type(moderators)}"
            )
        self._resolver = resolver
        self._moderators = moderators
        self._rails = rails
        self._event_log = event_log if event_log is not None else EventLog()

        self._apps = AppRegistry(resolver)
        self._apps_lock = threading.Lock()
        self._orders = OrderStore()
        self._ledger = BalanceLedger()
        self._calculator = SettlementCalculator()
        self._disputes = DisputeEngine(moderators, self._calculator)
        self._claims = ClaimResolver(self._calculator)

        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = self._event_log.count
        self._event_lock = threading.Lock()

        # Set when an event could not be recorded after state had already
        # changed. In-memory state is correct but the audit trail has a gap.
        self._audit_degraded: bool = False

    # ------------------------------------------------------------------
    # App management
    # ------------------------------------------------------------------

    def register_app(
        self,
        owner: str,
        name: str,
        uri: str = "",
        dispute_window_seconds: Optional[int] = None,
        refuse_window_seconds: Optional[int] = None,
        claim_window_seconds: Optional[int] = None,
        moderator_commission_pct: Optional[int] = None,
        owner_commission_pct: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Register a tenant app. Omitted parameters take policy defaults."""
        if now is None:
            now = datetime.now(timezone.utc)
        defaults = self._resolver.app_defaults()
        params = {
            "dispute_window_seconds": dispute_window_seconds,
            "refuse_window_seconds": refuse_window_seconds,
            "claim_window_seconds": claim_window_seconds,
            "moderator_commission_pct": moderator_commission_pct,
            "owner_commission_pct": owner_commission_pct,
        }
        for key, value in params.items():
            if value is None:
                params[key] = defaults[key]

        try:
            with self._apps_lock:
                app = self._apps.register_app(owner, name, uri, now=now, **params)
        except EscrowError as e:
            return self._failure(e)

        warnings: list[str] = []
        self._emit(EventKind.APP_REGISTERED, owner, self._app_payload(app), now, warnings)
        return self._success(self._app_payload(app), warnings)

    def update_app(
        self,
        app_id: int,
        caller: str,
        now: Optional[datetime] = None,
        **changes: Any,
    ) -> ServiceResult:
        """Modify an app on behalf of its current owner."""
        if now is None:
            now = datetime.now(timezone.utc)
        try:
            with self._apps_lock:
                previous_owner = self._apps.get_app(app_id).owner
                app = self._apps.update_app(app_id, caller, **changes)
        except EscrowError as e:
            return self._failure(e)

        payload = self._app_payload(app)
        payload["changed"] = sorted(changes)
        payload["previous_owner"] = previous_owner
        warnings: list[str] = []
        self._emit(EventKind.APP_UPDATED, caller, payload, now, warnings)
        return self._success(self._app_payload(app), warnings)

    def get_app(self, app_id: int) -> Optional[App]:
        if not self._apps.has_app(app_id):
            return None
        return self._apps.get_app(app_id)

    # ------------------------------------------------------------------
    # Order lifecycle
    # ------------------------------------------------------------------

    def pay_order(
        self,
        payer: str,
        app_id: int,
        buyer: str,
        seller: str,
        asset: str,
        amount: int,
        primary_moderator_id: int,
        value: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Fund a new order into custody on behalf of ``buyer``.

        For the native asset the attached ``value`` must equal ``amount``
        exactly. For any other asset ``value`` must be absent or zero and
        the amount is pulled from the payer.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        try:
            app = self._apps.get_app(app_id)
            if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
                raise InvalidArgument(f"Order amount must be a positive integer, got {amount!r}")
            if not buyer or not seller or not payer:
                raise InvalidArgument("Payer, buyer and seller must be non-empty")
            if not self._disputes.is_valid_moderator(primary_moderator_id):
                raise InvalidArgument(
                    f"Primary moderator {primary_moderator_id!r} outside "
                    f"[1, {self._moderators.max_moderator_id()}]"
                )
            rail = self._rails.get_rail(asset)
            if asset == self._resolver.native_asset:
                if value != amount:
                    raise InvalidArgument(
                        f"Attached value {value!r} must equal order amount {amount}"
                    )
            elif value not in (None, 0):
                raise InvalidArgument(
                    f"Value cannot be attached to a {asset} payment, got {value!r}"
                )

            rail.pull_in(payer, amount)
            order = self._orders.create_order(
                app_id=app_id,
                asset=asset,
                amount=amount,
                buyer=buyer,
                seller=seller,
                payer=payer,
                primary_moderator_id=primary_moderator_id,
                claim_window_seconds=app.claim_window_seconds,
                now=now,
            )
        except EscrowError as e:
            return self._failure(e)

        warnings: list[str] = []
        self._emit(EventKind.ORDER_CREATED, payer, {
            "order_id": order.order_id,
            "app_id": order.app_id,
            "asset": order.asset,
            "amount": order.amount,
            "buyer": order.buyer,
            "seller": order.seller,
            "primary_moderator_id": order.primary_moderator_id,
            "claim_deadline_utc": _iso(order.claim_deadline_utc),
        }, now, warnings)
        return self._success(self._order_payload(order), warnings)

    def confirm_done(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Buyer confirms delivery. Seller is credited the full amount."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                self._require_caller(order, caller, order.buyer, "confirm")
                OrderStateMachine.require(order, OrderAction.CONFIRM)
                app = self._apps.get_app(order.app_id)
                breakdown = self._calculator.confirmed(order, app)
                self._settle(order, OrderAction.CONFIRM, breakdown, caller, now, warnings)
                data = self._order_payload(order)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    def ask_refund(
        self,
        order_id: int,
        caller: str,
        refund_amount: int,
        secondary_moderator_id: int,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Buyer opens (or revises) a refund request within the dispute window."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                self._require_caller(order, caller, order.buyer, "ask a refund on")
                OrderStateMachine.require(order, OrderAction.ASK_REFUND)
                app = self._apps.get_app(order.app_id)
                window_end = order.created_utc + timedelta(seconds=app.dispute_window_seconds)
                if not now < window_end:
                    raise DeadlineExpired(
                        f"Dispute window for order {order_id} closed at {window_end.isoformat()}"
                    )
                if (
                    not isinstance(refund_amount, int)
                    or isinstance(refund_amount, bool)
                    or not 0 < refund_amount <= order.amount
                ):
                    raise InvalidArgument(
                        f"Refund amount {refund_amount!r} outside (0, {order.amount}]"
                    )
                if not self._disputes.is_valid_moderator(secondary_moderator_id):
                    raise InvalidArgument(
                        f"Secondary moderator {secondary_moderator_id!r} outside "
                        f"[1, {self._moderators.max_moderator_id()}]"
                    )

                revised = order.status == OrderStatus.REFUND_ASKED
                dispute = self._orders.put_dispute(
                    order_id,
                    refund_amount=refund_amount,
                    secondary_moderator_id=secondary_moderator_id,
                    refuse_deadline_utc=now + timedelta(seconds=app.refuse_window_seconds),
                    now=now,
                )
                OrderStateMachine.apply(order, OrderAction.ASK_REFUND)
                self._emit(EventKind.DISPUTE_OPENED, caller, {
                    "order_id": order_id,
                    "app_id": order.app_id,
                    "refund_amount": dispute.refund_amount,
                    "secondary_moderator_id": dispute.secondary_moderator_id,
                    "refuse_deadline_utc": _iso(dispute.refuse_deadline_utc),
                    "revised": revised,
                }, now, warnings)
                data = self._order_payload(order)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    def cancel_refund(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Buyer withdraws the refund request; the order returns to PAID."""
        return self._simple_transition(
            order_id, caller, now,
            action=OrderAction.CANCEL_REFUND,
            kind=EventKind.REFUND_CANCELLED,
            allowed=lambda o: caller == o.buyer,
            verb="cancel the refund on",
        )

    def refuse_refund(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Seller refuses the refund request."""
        return self._simple_transition(
            order_id, caller, now,
            action=OrderAction.REFUSE_REFUND,
            kind=EventKind.REFUND_REFUSED,
            allowed=lambda o: caller == o.seller,
            verb="refuse the refund on",
        )

    def escalate(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Either party sends a refused refund to the moderator panel."""
        return self._simple_transition(
            order_id, caller, now,
            action=OrderAction.ESCALATE,
            kind=EventKind.ESCALATED,
            allowed=lambda o: caller in (o.buyer, o.seller),
            verb="escalate",
        )

    def agree_refund(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Seller consents to the refund, or a panel member votes for it."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                if caller == order.seller:
                    OrderStateMachine.require(order, OrderAction.SELLER_AGREE)
                    app = self._apps.get_app(order.app_id)
                    dispute = self._orders.get_dispute(order_id)
                    breakdown = self._calculator.seller_agreed(
                        order, app, dispute.refund_amount,
                    )
                    self._settle(
                        order, OrderAction.SELLER_AGREE, breakdown, caller, now, warnings,
                    )
                    data = self._order_payload(order)
                else:
                    if order.status in (OrderStatus.REFUND_ASKED, OrderStatus.REFUND_REFUSED):
                        raise Unauthorized(
                            f"Only the seller can agree to the refund on order "
                            f"{order_id} before escalation"
                        )
                    data = self._vote(order, caller, Vote.AGREE, now, warnings)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    def disagree_refund(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """A panel member votes against the refund."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                data = self._vote(order, caller, Vote.DISAGREE, now, warnings)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    def claim(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Timeout settlement by the seller (unconfirmed) or buyer (unrefused)."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                app = self._apps.get_app(order.app_id)
                decision = self._claims.resolve(
                    order, self._orders.get_dispute(order_id), app, caller, now,
                )
                self._settle(
                    order, decision.action, decision.breakdown, caller, now, warnings,
                )
                self._emit(EventKind.CLAIMED, caller, {
                    "order_id": order_id,
                    "app_id": order.app_id,
                    "claimant": caller,
                    "path": decision.action.value,
                    "amount": order.amount,
                }, now, warnings)
                data = self._order_payload(order)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def withdraw(
        self,
        participant: str,
        asset: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Move credited balance out of custody to the participant."""
        if now is None:
            now = datetime.now(timezone.utc)
        try:
            if not isinstance(amount, int) or isinstance(amount, bool):
                raise InvalidArgument(f"Withdrawal amount must be an integer, got {amount!r}")
            rail = self._rails.get_rail(asset)
            remaining = self._ledger.withdraw(participant, asset, amount, rail)
        except EscrowError as e:
            return self._failure(e)

        warnings: list[str] = []
        self._emit(EventKind.WITHDRAWN, participant, {
            "participant": participant,
            "asset": asset,
            "amount": amount,
            "balance": remaining,
        }, now, warnings)
        return self._success({
            "participant": participant,
            "asset": asset,
            "amount": amount,
            "balance": remaining,
        }, warnings)

    def balance_of(self, participant: str, asset: str) -> int:
        return self._ledger.balance_of(participant, asset)

    def balances(self, asset: str) -> dict[str, int]:
        return self._ledger.balances(asset)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Optional[Order]:
        try:
            return self._orders.get_order(order_id)
        except EscrowError:
            return None

    def get_order_detail(self, order_id: int) -> ServiceResult:
        """Order, dispute and tally as one JSON-ready record."""
        try:
            order = self._orders.get_order(order_id)
        except EscrowError as e:
            return self._failure(e)
        data = self._order_payload(order)
        dispute = self._orders.get_dispute(order_id)
        if dispute is not None:
            data["dispute"] = {
                "refund_amount": dispute.refund_amount,
                "secondary_moderator_id": dispute.secondary_moderator_id,
                "refuse_deadline_utc": _iso(dispute.refuse_deadline_utc),
                "opened_utc": _iso(dispute.opened_utc),
            }
        tally = self._orders.get_tally(order_id)
        data["votes"] = {
            "primary": tally.primary_vote.name,
            "secondary": tally.secondary_vote.name,
        }
        return ServiceResult(success=True, data=data)

    def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        return self._orders.list_orders(status)

    def audit(self, asset: str) -> ServiceResult:
        """Reconcile custody against what the engine owes.

        custody == liabilities + open_order_value + float, where float is
        the rounding dust left unallocated by settlement. A negative float
        means value left custody that was never credited.
        """
        try:
            rail = self._rails.get_rail(asset)
        except EscrowError as e:
            return self._failure(e)
        custody = rail.custody
        liabilities = self._ledger.liabilities(asset)
        open_value = self._orders.open_value(asset)
        unallocated = custody - liabilities - open_value
        data = {
            "asset": asset,
            "custody": custody,
            "liabilities": liabilities,
            "open_order_value": open_value,
            "float": unallocated,
            "total_credited": self._ledger.total_credited(asset),
            "total_withdrawn": self._ledger.total_withdrawn(asset),
            "balanced": unallocated >= 0,
        }
        if unallocated < 0:
            return ServiceResult(
                success=False,
                errors=[f"Custody shortfall of {-unallocated} {asset}"],
                data=data,
                error_code="custody_shortfall",
            )
        return ServiceResult(success=True, data=data)

    def status(self) -> dict[str, Any]:
        """Summary counts for operators."""
        by_status = {s.name: 0 for s in OrderStatus}
        for order in self._orders.list_orders():
            by_status[order.status.name] += 1
        return {
            "apps": self._app_count(),
            "orders": by_status,
            "assets": self._rails.list_assets(),
            "events": self._event_log.count,
            "audit_degraded": self._audit_degraded,
        }

    def _app_count(self) -> int:
        with self._apps_lock:
            return len(self._apps.list_apps())

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def audit_degraded(self) -> bool:
        return self._audit_degraded

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _vote(
        self,
        order: Order,
        caller: str,
        cast: Vote,
        now: datetime,
        warnings: list[str],
    ) -> dict[str, Any]:
        """Route a vote through the dispute engine and apply its outcome."""
        dispute = self._orders.get_dispute(order.order_id)
        app = self._apps.get_app(order.app_id)
        tally = self._orders.get_tally(order.order_id)
        decision = self._disputes.cast_vote(order, dispute, tally, app, caller, cast)

        self._emit(EventKind.VOTE_CAST, caller, {
            "order_id": order.order_id,
            "app_id": order.app_id,
            "role": decision.role.value,
            "action": decision.action.value,
            "vote": cast.name,
            "primary_vote": decision.primary_vote.name,
            "secondary_vote": decision.secondary_vote.name,
        }, now, warnings)

        if decision.resolved:
            for mod_id, won in decision.reputation:
                self._emit(EventKind.REPUTATION_RECORDED, caller, {
                    "order_id": order.order_id,
                    "app_id": order.app_id,
                    "moderator_id": mod_id,
                    "won": won,
                }, now, warnings)
            self._settle(
                order, OrderAction.VOTE, decision.breakdown, caller, now, warnings,
            )

        data = self._order_payload(order)
        data["vote"] = {
            "role": decision.role.value,
            "action": decision.action.value,
            "resolved": decision.resolved,
        }
        return data

    def _simple_transition(
        self,
        order_id: int,
        caller: str,
        now: Optional[datetime],
        action: OrderAction,
        kind: EventKind,
        allowed: Callable[[Order], bool],
        verb: str,
    ) -> ServiceResult:
        """Caller-gated transition with no economic effect."""
        if now is None:
            now = datetime.now(timezone.utc)
        warnings: list[str] = []
        try:
            with self._orders.locked(order_id) as order:
                if not allowed(order):
                    raise Unauthorized(f"{caller} cannot {verb} order {order_id}")
                previous = order.status
                OrderStateMachine.apply(order, action)
                self._emit(kind, caller, {
                    "order_id": order_id,
                    "app_id": order.app_id,
                    "from_status": previous.name,
                    "to_status": order.status.name,
                }, now, warnings)
                data = self._order_payload(order)
        except EscrowError as e:
            return self._failure(e)
        return self._success(data, warnings)

    def _settle(
        self,
        order: Order,
        action: OrderAction,
        breakdown: SettlementBreakdown,
        actor: str,
        now: datetime,
        warnings: list[str],
    ) -> None:
        """Move the order to RESOLVED and credit every party.

        Caller holds the order lock and has already validated the action.
        """
        OrderStateMachine.apply(order, action)
        order.resolution = breakdown.resolution
        order.resolved_utc = now

        for credit in breakdown.credits:
            balance = self._ledger.credit(credit.participant, order.asset, credit.amount)
            self._emit(EventKind.BALANCE_CREDITED, actor, {
                "order_id": order.order_id,
                "app_id": order.app_id,
                "participant": credit.participant,
                "role": credit.role,
                "asset": order.asset,
                "amount": credit.amount,
                "balance": balance,
            }, now, warnings)

        self._emit(EventKind.ORDER_RESOLVED, actor, {
            "order_id": order.order_id,
            "app_id": order.app_id,
            "outcome": breakdown.resolution.value,
            "amount": breakdown.amount,
            "seats_involved": breakdown.seats_involved,
            "credited": breakdown.total_credited,
            "dust": breakdown.dust,
        }, now, warnings)

    @staticmethod
    def _require_caller(order: Order, caller: str, expected: str, verb: str) -> None:
        if caller != expected:
            raise Unauthorized(f"{caller} cannot {verb} order {order.order_id}")

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _emit(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: datetime,
        warnings: list[str],
    ) -> None:
        """Append an audit event after a committed state change.

        State has already changed when this runs, so a failed append does
        not undo the operation: it is reported as a warning and the
        service is flagged audit_degraded.
        """
        with self._event_lock:
            try:
                event = EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=kind,
                    actor_id=actor_id,
                    payload=payload,
                    timestamp_utc=now,
                )
                self._event_log.append(event)
            except (ValueError, OSError) as e:
                self._audit_degraded = True
                warnings.append(f"Event log failure ({kind.value}): {e}")

    @staticmethod
    def _success(data: dict[str, Any], warnings: list[str]) -> ServiceResult:
        if warnings:
            data = dict(data)
            data["warning"] = "; ".join(warnings)
            data["audit_degraded"] = True
        return ServiceResult(success=True, data=data)

    @staticmethod
    def _failure(error: EscrowError) -> ServiceResult:
        return ServiceResult(success=False, errors=[str(error)], error_code=error.code)

    @staticmethod
    def _app_payload(app: App) -> dict[str, Any]:
        return {
            "app_id": app.app_id,
            "owner": app.owner,
            "name": app.name,
            "uri": app.uri,
            "dispute_window_seconds": app.dispute_window_seconds,
            "refuse_window_seconds": app.refuse_window_seconds,
            "claim_window_seconds": app.claim_window_seconds,
            "moderator_commission_pct": app.moderator_commission_pct,
            "owner_commission_pct": app.owner_commission_pct,
        }

    @staticmethod
    def _order_payload(order: Order) -> dict[str, Any]:
        return {
            "order_id": order.order_id,
            "app_id": order.app_id,
            "asset": order.asset,
            "amount": order.amount,
            "buyer": order.buyer,
            "seller": order.seller,
            "status": order.status.name,
            "resolution": order.resolution.value if order.resolution else None,
            "claim_deadline_utc": _iso(order.claim_deadline_utc),
            "resolved_utc": _iso(order.resolved_utc),
        }
