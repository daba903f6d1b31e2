"""Tests for the dispute vote engine — every decision-table row, every role."""

import pytest
from datetime import datetime, timezone

from custodian.compensation.settlement import SettlementCalculator
from custodian.errors import InvalidStateTransition, Unauthorized
from custodian.legal.dispute import (
    DECISION_TABLE,
    DisputeEngine,
    Panel,
    VoteAction,
    VoterRole,
    capabilities,
    decide,
)
from custodian.models.escrow import (
    App,
    Dispute,
    Order,
    OrderStatus,
    Resolution,
    Vote,
    VoteTally,
)
from custodian.registry.moderators import ModeratorRoster

N, A, D = Vote.NOT_VOTED, Vote.AGREE, Vote.DISAGREE


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _app() -> App:
    return App(
        app_id=1, owner="alice", name="Shop", uri="",
        dispute_window_seconds=3600, refuse_window_seconds=3600,
        claim_window_seconds=7200,
        moderator_commission_pct=1, owner_commission_pct=1,
    )


def _case(roster: ModeratorRoster, primary: int = 1, secondary: int = 2):
    order = Order(
        order_id=1, app_id=1, asset="native", amount=1000,
        buyer="bob", seller="carol", payer="bob",
        created_utc=_now(), claim_deadline_utc=_now(),
        primary_moderator_id=primary, status=OrderStatus.ESCALATED,
    )
    dispute = Dispute(
        order_id=1, refund_amount=400, secondary_moderator_id=secondary,
        refuse_deadline_utc=_now(), opened_utc=_now(),
    )
    return order, dispute, VoteTally(order_id=1)


@pytest.fixture
def roster() -> ModeratorRoster:
    roster = ModeratorRoster()
    roster.mint("mod-a")    # 1
    roster.mint("mod-b")    # 2
    roster.mint("mod-a")    # 3, same owner as seat 1
    return roster


@pytest.fixture
def engine(roster: ModeratorRoster) -> DisputeEngine:
    return DisputeEngine(roster, SettlementCalculator())


# Every applicable (role, primary, secondary, cast) row and its action.
EXPECTED_ROWS = [
    # Sole moderator: any prior state, always resolves.
    *[((VoterRole.SOLE_MODERATOR, p, s, c), VoteAction.RESOLVE_SOLE)
      for p in (N, A, D) for s in (N, A, D) for c in (A, D)],
    # Tie-breaker: only after opposite votes.
    ((VoterRole.TIE_BREAKER, A, D, A), VoteAction.TIE_BREAK),
    ((VoterRole.TIE_BREAKER, A, D, D), VoteAction.TIE_BREAK),
    ((VoterRole.TIE_BREAKER, D, A, A), VoteAction.TIE_BREAK),
    ((VoterRole.TIE_BREAKER, D, A, D), VoteAction.TIE_BREAK),
    # Primary: only before its own vote.
    ((VoterRole.PRIMARY, N, N, A), VoteAction.RECORD_PRIMARY),
    ((VoterRole.PRIMARY, N, N, D), VoteAction.RECORD_PRIMARY),
    ((VoterRole.PRIMARY, N, A, A), VoteAction.RECORD_PRIMARY_AND_RESOLVE),
    ((VoterRole.PRIMARY, N, A, D), VoteAction.RECORD_PRIMARY),
    ((VoterRole.PRIMARY, N, D, D), VoteAction.RECORD_PRIMARY_AND_RESOLVE),
    ((VoterRole.PRIMARY, N, D, A), VoteAction.RECORD_PRIMARY),
    # Secondary: symmetric.
    ((VoterRole.SECONDARY, N, N, A), VoteAction.RECORD_SECONDARY),
    ((VoterRole.SECONDARY, N, N, D), VoteAction.RECORD_SECONDARY),
    ((VoterRole.SECONDARY, A, N, A), VoteAction.RECORD_SECONDARY_AND_RESOLVE),
    ((VoterRole.SECONDARY, A, N, D), VoteAction.RECORD_SECONDARY),
    ((VoterRole.SECONDARY, D, N, D), VoteAction.RECORD_SECONDARY_AND_RESOLVE),
    ((VoterRole.SECONDARY, D, N, A), VoteAction.RECORD_SECONDARY),
]


class TestDecisionTable:
    @pytest.mark.parametrize("key,action", EXPECTED_ROWS)
    def test_row(self, key, action: VoteAction) -> None:
        assert DECISION_TABLE[key] == action

    def test_table_is_exactly_the_expected_rows(self) -> None:
        assert dict(EXPECTED_ROWS) == DECISION_TABLE

    @pytest.mark.parametrize("key", [
        (VoterRole.TIE_BREAKER, N, N, A),
        (VoterRole.TIE_BREAKER, A, N, A),
        (VoterRole.TIE_BREAKER, A, A, D),
        (VoterRole.TIE_BREAKER, D, D, A),
        (VoterRole.PRIMARY, A, N, D),
        (VoterRole.PRIMARY, D, A, A),
        (VoterRole.SECONDARY, N, A, A),
        (VoterRole.SECONDARY, A, D, D),
    ])
    def test_missing_rows_are_unauthorized(self, key) -> None:
        role, p, s, cast = key
        with pytest.raises(Unauthorized):
            decide([role], p, s, cast)

    def test_no_roles_is_unauthorized(self) -> None:
        with pytest.raises(Unauthorized):
            decide([], N, N, A)

    def test_precedence_falls_through_to_seat_role(self) -> None:
        # App owner who also holds the primary seat, seats not yet opposed.
        assert decide([VoterRole.TIE_BREAKER, VoterRole.PRIMARY], N, N, A) == (
            VoterRole.PRIMARY, VoteAction.RECORD_PRIMARY,
        )

    def test_precedence_prefers_tie_break(self) -> None:
        assert decide([VoterRole.TIE_BREAKER, VoterRole.SECONDARY], A, D, D)[0] == (
            VoterRole.TIE_BREAKER
        )


class TestCapabilities:
    def test_distinct_seats(self) -> None:
        panel = Panel(1, 2, "mod-a", "mod-b")
        assert capabilities("mod-a", panel, "alice") == [VoterRole.PRIMARY]
        assert capabilities("mod-b", panel, "alice") == [VoterRole.SECONDARY]
        assert capabilities("alice", panel, "alice") == [VoterRole.TIE_BREAKER]
        assert capabilities("bob", panel, "alice") == []
        assert panel.seats_involved == 2

    def test_single_owner_panel(self) -> None:
        panel = Panel(1, 3, "mod-a", "mod-a")
        assert capabilities("mod-a", panel, "alice") == [VoterRole.SOLE_MODERATOR]
        assert panel.single_owner
        assert panel.seats_involved == 1

    def test_app_owner_holding_seat(self) -> None:
        panel = Panel(1, 2, "alice", "mod-b")
        assert capabilities("alice", panel, "alice") == [
            VoterRole.TIE_BREAKER, VoterRole.PRIMARY,
        ]


class TestEngine:
    def test_votes_only_while_escalated(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        order.status = OrderStatus.REFUND_REFUSED
        with pytest.raises(InvalidStateTransition):
            engine.cast_vote(order, dispute, tally, _app(), "mod-a", A)

    def test_stranger_unauthorized(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        with pytest.raises(Unauthorized):
            engine.cast_vote(order, dispute, tally, _app(), "bob", A)
        assert (tally.primary_vote, tally.secondary_vote) == (N, N)

    def test_matching_votes_resolve(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        first = engine.cast_vote(order, dispute, tally, _app(), "mod-a", D)
        assert not first.resolved
        assert first.breakdown is None
        second = engine.cast_vote(order, dispute, tally, _app(), "mod-b", D)
        assert second.resolved
        assert second.refund is False
        assert second.breakdown.resolution == Resolution.VOTE_RELEASE
        assert second.breakdown.credited_to("carol") == 970
        assert second.reputation == ((1, True), (2, True))
        assert roster.reputation(1).wins == 1
        assert roster.reputation(2).wins == 1

    def test_split_then_tie_break(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        engine.cast_vote(order, dispute, tally, _app(), "mod-a", D)
        waiting = engine.cast_vote(order, dispute, tally, _app(), "mod-b", A)
        assert not waiting.resolved
        decision = engine.cast_vote(order, dispute, tally, _app(), "alice", A)
        assert decision.role == VoterRole.TIE_BREAKER
        assert decision.resolved
        assert (tally.primary_vote, tally.secondary_vote) == (D, A)
        assert decision.reputation == ((1, False), (2, True))
        b = decision.breakdown
        assert b.credited_to("bob") == 388
        assert b.credited_to("carol") == 582
        assert b.credited_to("mod-b") == 10
        assert b.credited_to("mod-a") == 0
        assert b.credited_to("alice") == 20
        assert roster.reputation(1).total_rounds == 1
        assert roster.reputation(1).wins == 0

    def test_sole_moderator_single_reward(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster, primary=1, secondary=3)
        decision = engine.cast_vote(order, dispute, tally, _app(), "mod-a", A)
        assert decision.role == VoterRole.SOLE_MODERATOR
        assert (tally.primary_vote, tally.secondary_vote) == (A, A)
        assert decision.reputation == ((1, True),)
        b = decision.breakdown
        assert b.seats_involved == 1
        assert b.credited_to("bob") == 392
        assert b.credited_to("carol") == 588
        assert b.credited_to("mod-a") == 10
        assert b.credited_to("alice") == 10
        assert roster.reputation(3).total_rounds == 0

    def test_ownership_looked_up_at_vote_time(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        roster.transfer(1, "mod-a", "oscar")
        with pytest.raises(Unauthorized):
            engine.cast_vote(order, dispute, tally, _app(), "mod-a", A)
        decision = engine.cast_vote(order, dispute, tally, _app(), "oscar", A)
        assert decision.role == VoterRole.PRIMARY

    def test_transfer_can_merge_seats(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        engine.cast_vote(order, dispute, tally, _app(), "mod-a", D)
        roster.transfer(2, "mod-b", "mod-a")
        decision = engine.cast_vote(order, dispute, tally, _app(), "mod-a", A)
        assert decision.role == VoterRole.SOLE_MODERATOR
        assert decision.refund is True
        assert decision.breakdown.seats_involved == 1

    def test_second_vote_from_same_seat_rejected(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        engine.cast_vote(order, dispute, tally, _app(), "mod-a", A)
        with pytest.raises(Unauthorized):
            engine.cast_vote(order, dispute, tally, _app(), "mod-a", D)
        assert tally.primary_vote == A

    def test_validates_moderator_ids(self, engine: DisputeEngine) -> None:
        assert engine.is_valid_moderator(1)
        assert engine.is_valid_moderator(3)
        assert not engine.is_valid_moderator(0)
        assert not engine.is_valid_moderator(4)
        assert not engine.is_valid_moderator(True)

    def test_stranger_rejected_before_state(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        order.status = OrderStatus.PAID
        with pytest.raises(Unauthorized):
            engine.cast_vote(order, None, tally, _app(), "bob", D)
        with pytest.raises(InvalidStateTransition):
            engine.cast_vote(order, None, tally, _app(), "mod-a", D)
        order.status = OrderStatus.RESOLVED
        with pytest.raises(Unauthorized):
            engine.cast_vote(order, dispute, tally, _app(), "bob", A)

    def test_panel_membership(self, roster, engine: DisputeEngine) -> None:
        order, dispute, _ = _case(roster)
        assert engine.is_panel_member(order, dispute, _app(), "alice")
        assert engine.is_panel_member(order, dispute, _app(), "mod-a")
        assert engine.is_panel_member(order, dispute, _app(), "mod-b")
        assert not engine.is_panel_member(order, None, _app(), "mod-b")
        assert not engine.is_panel_member(order, dispute, _app(), "carol")

    def test_merged_seats_after_split_lose_tie_break(self, roster, engine: DisputeEngine) -> None:
        order, dispute, tally = _case(roster)
        engine.cast_vote(order, dispute, tally, _app(), "mod-a", D)
        engine.cast_vote(order, dispute, tally, _app(), "mod-b", A)
        roster.transfer(2, "mod-b", "mod-a")
        decision = engine.cast_vote(order, dispute, tally, _app(), "alice", A)
        assert decision.role == VoterRole.TIE_BREAKER
        assert decision.reputation == ((1, False),)
        b = decision.breakdown
        assert b.seats_involved == 1
        assert b.credited_to("mod-a") == 0
        assert b.credited_to("alice") == 20
        assert b.credited_to("bob") == 392
        assert b.credited_to("carol") == 588
        assert roster.reputation(1).wins == 0
        assert roster.reputation(1).total_rounds == 1
