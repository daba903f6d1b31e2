"""Dispute vote engine — two moderator seats plus an app-owner tie-break.

An escalated dispute is decided by two seats: the primary moderator
(chosen by the payer at payment time) and the secondary moderator
(chosen by the buyer with the first refund request). Each seat's voter
is whoever owns that moderator identity at the moment the vote is cast.

Resolution is a decision table keyed by
    (role, primary_vote, secondary_vote, cast)
Authorisation and decision are separate steps:

1. capabilities() derives the caller's roles from ownership alone, in
   precedence order: SOLE_MODERATOR, TIE_BREAKER, PRIMARY, SECONDARY.
2. decide() walks those roles and returns the first table entry that
   applies. No entry for any role means Unauthorized.

Table semantics:
- SOLE_MODERATOR (both seats owned by the caller): record both seats as
  the cast value and resolve with it.
- TIE_BREAKER (caller owns the app, seats voted opposite): resolve with
  the cast value; stored seat votes are left as cast.
- PRIMARY / SECONDARY (caller owns that seat, seat not yet voted):
  record the vote; resolve if the other seat already voted the same
  value, otherwise wait.

Reward accounting on resolution:
- A seat whose vote equals the outcome wins: its owner earns the
  moderator share and record_outcome(seat, True) is called.
- A seat that voted the other way loses: record_outcome(seat, False),
  no payment; the app owner absorbs that share.
- A single-owner panel earns one share and one reputation update.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from custodian.compensation.settlement import SettlementCalculator
from custodian.engine.state_machine import OrderAction, OrderStateMachine
from custodian.errors import InvalidArgument, Unauthorized
from custodian.models.escrow import (
    App,
    Dispute,
    Order,
    SettlementBreakdown,
    Vote,
    VoteTally,
)
from custodian.registry.moderators import ModeratorRegistry


class VoterRole(str, enum.Enum):
    """Capacity in which a caller acts on an escalated dispute."""
    SOLE_MODERATOR = "sole_moderator"
    TIE_BREAKER = "tie_breaker"
    PRIMARY = "primary"
    SECONDARY = "secondary"


class VoteAction(str, enum.Enum):
    """What a vote does to the tally."""
    RESOLVE_SOLE = "resolve_sole"
    TIE_BREAK = "tie_break"
    RECORD_PRIMARY = "record_primary"
    RECORD_PRIMARY_AND_RESOLVE = "record_primary_and_resolve"
    RECORD_SECONDARY = "record_secondary"
    RECORD_SECONDARY_AND_RESOLVE = "record_secondary_and_resolve"


_RESOLVING = frozenset({
    VoteAction.RESOLVE_SOLE,
    VoteAction.TIE_BREAK,
    VoteAction.RECORD_PRIMARY_AND_RESOLVE,
    VoteAction.RECORD_SECONDARY_AND_RESOLVE,
})

ROLE_PRECEDENCE = (
    VoterRole.SOLE_MODERATOR,
    VoterRole.TIE_BREAKER,
    VoterRole.PRIMARY,
    VoterRole.SECONDARY,
)

DecisionKey = tuple[VoterRole, Vote, Vote, Vote]


def _build_decision_table() -> dict[DecisionKey, VoteAction]:
    """Enumerate every (role, primary, secondary, cast) row that applies."""
    table: dict[DecisionKey, VoteAction] = {}
    recorded = (Vote.NOT_VOTED, Vote.AGREE, Vote.DISAGREE)
    for p in recorded:
        for s in recorded:
            for cast in (Vote.AGREE, Vote.DISAGREE):
                table[(VoterRole.SOLE_MODERATOR, p, s, cast)] = VoteAction.RESOLVE_SOLE
                if p != Vote.NOT_VOTED and s == p.opposite():
                    table[(VoterRole.TIE_BREAKER, p, s, cast)] = VoteAction.TIE_BREAK
                if p == Vote.NOT_VOTED:
                    table[(VoterRole.PRIMARY, p, s, cast)] = (
                        VoteAction.RECORD_PRIMARY_AND_RESOLVE if s == cast
                        else VoteAction.RECORD_PRIMARY
                    )
                if s == Vote.NOT_VOTED:
                    table[(VoterRole.SECONDARY, p, s, cast)] = (
                        VoteAction.RECORD_SECONDARY_AND_RESOLVE if p == cast
                        else VoteAction.RECORD_SECONDARY
                    )
    return table


DECISION_TABLE: dict[DecisionKey, VoteAction] = _build_decision_table()


@dataclass(frozen=True)
class Panel:
    """Seat identities and their owners at the moment of a vote."""
    primary_id: int
    secondary_id: int
    primary_owner: str
    secondary_owner: str

    @property
    def single_owner(self) -> bool:
        return self.primary_owner == self.secondary_owner

    @property
    def seats_involved(self) -> int:
        return 1 if self.single_owner else 2


@dataclass(frozen=True)
class VoteDecision:
    """Result of casting one vote."""
    order_id: int
    caller: str
    role: VoterRole
    action: VoteAction
    cast: Vote
    primary_vote: Vote
    secondary_vote: Vote
    breakdown: Optional[SettlementBreakdown] = None
    reputation: tuple[tuple[int, bool], ...] = field(default_factory=tuple)

    @property
    def resolved(self) -> bool:
        return self.action in _RESOLVING

    @property
    def refund(self) -> Optional[bool]:
        if not self.resolved:
            return None
        return self.cast == Vote.AGREE


def capabilities(caller: str, panel: Panel, app_owner: str) -> list[VoterRole]:
    """Roles ``caller`` holds on this panel, in precedence order."""
    roles: list[VoterRole] = []
    if panel.single_owner and caller == panel.primary_owner:
        roles.append(VoterRole.SOLE_MODERATOR)
    if caller == app_owner:
        roles.append(VoterRole.TIE_BREAKER)
    if not panel.single_owner:
        if caller == panel.primary_owner:
            roles.append(VoterRole.PRIMARY)
        if caller == panel.secondary_owner:
            roles.append(VoterRole.SECONDARY)
    return roles


def decide(
    roles: list[VoterRole],
    primary_vote: Vote,
    secondary_vote: Vote,
    cast: Vote,
) -> tuple[VoterRole, VoteAction]:
    """First applicable table row for the caller's roles."""
    for role in ROLE_PRECEDENCE:
        if role not in roles:
            continue
        action = DECISION_TABLE.get((role, primary_vote, secondary_vote, cast))
        if action is not None:
            return role, action
    raise Unauthorized(
        f"No vote permitted for roles [{', '.join(r.value for r in roles)}] "
        f"with primary={primary_vote.name} secondary={secondary_vote.name}"
    )


class DisputeEngine:
    """Applies votes to escalated disputes and settles decided ones.

    The engine mutates only the vote tally and moderator reputation. It
    returns the settlement breakdown; crediting the ledger and moving the
    order to RESOLVED is the service layer's job.

    Usage:
        engine = DisputeEngine(moderators, SettlementCalculator())
        decision = engine.cast_vote(order, dispute, tally, app, caller, Vote.AGREE)
        if decision.resolved:
            for credit in decision.breakdown.credits: ...
    """

    def __init__(
        self,
        moderators: ModeratorRegistry,
        calculator: SettlementCalculator,
    ) -> None:
        self._moderators = moderators
        self._calculator = calculator

    def seat_panel(self, order: Order, dispute: Dispute) -> Panel:
        """Resolve both seats to their current owners."""
        return Panel(
            primary_id=order.primary_moderator_id,
            secondary_id=dispute.secondary_moderator_id,
            primary_owner=self._moderators.owner_of(order.primary_moderator_id),
            secondary_owner=self._moderators.owner_of(dispute.secondary_moderator_id),
        )

    def is_valid_moderator(self, mod_id: int) -> bool:
        return (
            isinstance(mod_id, int)
            and not isinstance(mod_id, bool)
            and 1 <= mod_id <= self._moderators.max_moderator_id()
        )

    def is_panel_member(
        self,
        order: Order,
        dispute: Optional[Dispute],
        app: App,
        caller: str,
    ) -> bool:
        """Whether ``caller`` could hold any voting role on this order."""
        if caller == app.owner:
            return True
        if caller == self._moderators.owner_of(order.primary_moderator_id):
            return True
        return (
            dispute is not None
            and caller == self._moderators.owner_of(dispute.secondary_moderator_id)
        )

    def cast_vote(
        self,
        order: Order,
        dispute: Optional[Dispute],
        tally: VoteTally,
        app: App,
        caller: str,
        cast: Vote,
    ) -> VoteDecision:
        """Apply one vote. Raises Unauthorized or InvalidStateTransition.

        Callers outside the panel are rejected before the order state is
        consulted.
        """
        if cast not in (Vote.AGREE, Vote.DISAGREE):
            raise InvalidArgument(f"Vote must be AGREE or DISAGREE, got {cast!r}")
        if not self.is_panel_member(order, dispute, app, caller):
            raise Unauthorized(
                f"{caller} holds no seat on the panel for order {order.order_id}"
            )
        OrderStateMachine.require(order, OrderAction.VOTE)

        panel = self.seat_panel(order, dispute)
        roles = capabilities(caller, panel, app.owner)
        role, action = decide(roles, tally.primary_vote, tally.secondary_vote, cast)

        if action == VoteAction.RESOLVE_SOLE:
            tally.primary_vote = cast
            tally.secondary_vote = cast
        elif action in (VoteAction.RECORD_PRIMARY, VoteAction.RECORD_PRIMARY_AND_RESOLVE):
            tally.primary_vote = cast
        elif action in (VoteAction.RECORD_SECONDARY, VoteAction.RECORD_SECONDARY_AND_RESOLVE):
            tally.secondary_vote = cast

        breakdown = None
        reputation: tuple[tuple[int, bool], ...] = ()
        if action in _RESOLVING:
            breakdown, reputation = self._settle(order, dispute, tally, app, panel, cast)

        return VoteDecision(
            order_id=order.order_id,
            caller=caller,
            role=role,
            action=action,
            cast=cast,
            primary_vote=tally.primary_vote,
            secondary_vote=tally.secondary_vote,
            breakdown=breakdown,
            reputation=reputation,
        )

    def _settle(
        self,
        order: Order,
        dispute: Dispute,
        tally: VoteTally,
        app: App,
        panel: Panel,
        outcome: Vote,
    ) -> tuple[SettlementBreakdown, tuple[tuple[int, bool], ...]]:
        if panel.single_owner:
            # One owner on both seats wins only if both recorded votes match.
            if tally.primary_vote == tally.secondary_vote:
                vote = tally.primary_vote
            else:
                vote = Vote.NOT_VOTED
            seats = [(panel.primary_id, panel.primary_owner, vote)]
        else:
            seats = [
                (panel.primary_id, panel.primary_owner, tally.primary_vote),
                (panel.secondary_id, panel.secondary_owner, tally.secondary_vote),
            ]
        outcomes = tuple((mod_id, vote == outcome) for mod_id, _, vote in seats)
        winners = [owner for _, owner, vote in seats if vote == outcome]

        breakdown = self._calculator.vote_resolved(
            order,
            app,
            refund_amount=dispute.refund_amount,
            refund=outcome == Vote.AGREE,
            seats_involved=panel.seats_involved,
            winning_seat_owners=winners,
        )
        for mod_id, won in outcomes:
            self._moderators.record_outcome(mod_id, won)
        return breakdown, outcomes
