"""Tests for settlement arithmetic — proves truncation and conservation hold."""

import pytest
from datetime import datetime, timezone

from custodian.compensation.settlement import SettlementCalculator, net, share
from custodian.errors import InvalidArgument
from custodian.models.escrow import App, Order, Resolution


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _app(mod_pct: int = 1, owner_pct: int = 1) -> App:
    return App(
        app_id=1,
        owner="alice",
        name="Shop",
        uri="https://shop.example",
        dispute_window_seconds=604800,
        refuse_window_seconds=259200,
        claim_window_seconds=1209600,
        moderator_commission_pct=mod_pct,
        owner_commission_pct=owner_pct,
    )


def _order(amount: int = 1000) -> Order:
    return Order(
        order_id=7,
        app_id=1,
        asset="native",
        amount=amount,
        buyer="bob",
        seller="carol",
        payer="bob",
        created_utc=_now(),
        claim_deadline_utc=_now(),
        primary_moderator_id=1,
    )


@pytest.fixture
def calc() -> SettlementCalculator:
    return SettlementCalculator()


class TestArithmetic:
    def test_share_truncates(self) -> None:
        assert share(999, 1) == 9
        assert share(1000, 2) == 20
        assert share(1, 44) == 0

    def test_net_truncates(self) -> None:
        assert net(400, 2) == 392
        assert net(999, 3) == 969
        assert net(1, 1) == 0


class TestConfirmed:
    def test_seller_takes_everything(self, calc: SettlementCalculator) -> None:
        b = calc.confirmed(_order(), _app(mod_pct=14, owner_pct=44))
        assert b.resolution == Resolution.CONFIRMED
        assert b.credited_to("carol") == 1000
        assert b.credited_to("alice") == 0
        assert b.dust == 0


class TestSellerAgreed:
    def test_split(self, calc: SettlementCalculator) -> None:
        b = calc.seller_agreed(_order(), _app(), refund_amount=400)
        assert b.credited_to("alice") == 10
        assert b.credited_to("bob") == 396
        assert b.credited_to("carol") == 594
        assert b.dust == 0

    def test_full_refund_pays_seller_nothing(self, calc: SettlementCalculator) -> None:
        b = calc.seller_agreed(_order(), _app(), refund_amount=1000)
        assert b.credited_to("carol") == 0
        assert all(c.participant != "carol" for c in b.credits)
        assert b.credited_to("bob") == 990

    @pytest.mark.parametrize("refund", [0, -1, 1001])
    def test_refund_out_of_range(self, calc: SettlementCalculator, refund: int) -> None:
        with pytest.raises(InvalidArgument):
            calc.seller_agreed(_order(), _app(), refund_amount=refund)


class TestClaims:
    def test_seller_claimed(self, calc: SettlementCalculator) -> None:
        b = calc.seller_claimed(_order(), _app())
        assert b.resolution == Resolution.SELLER_CLAIMED
        assert b.credited_to("carol") == 990
        assert b.credited_to("alice") == 10

    def test_buyer_claimed_matches_seller_agreed(self, calc: SettlementCalculator) -> None:
        claimed = calc.buyer_claimed(_order(), _app(), 400)
        agreed = calc.seller_agreed(_order(), _app(), 400)
        assert claimed.resolution == Resolution.BUYER_CLAIMED
        assert [(c.participant, c.amount) for c in claimed.credits] == [
            (c.participant, c.amount) for c in agreed.credits
        ]


class TestVoteResolved:
    def test_single_owner_refund(self, calc: SettlementCalculator) -> None:
        b = calc.vote_resolved(
            _order(), _app(), refund_amount=400, refund=True,
            seats_involved=1, winning_seat_owners=["mallory"],
        )
        assert b.resolution == Resolution.VOTE_REFUND
        assert b.credited_to("bob") == 392
        assert b.credited_to("carol") == 588
        assert b.credited_to("mallory") == 10
        assert b.credited_to("alice") == 10
        assert b.dust == 0

    def test_tie_break_owner_absorbs_losing_seat(self, calc: SettlementCalculator) -> None:
        b = calc.vote_resolved(
            _order(), _app(), refund_amount=400, refund=True,
            seats_involved=2, winning_seat_owners=["mod-b"],
        )
        assert b.credited_to("bob") == 388
        assert b.credited_to("carol") == 582
        assert b.credited_to("mod-b") == 10
        assert b.credited_to("alice") == 20
        assert b.total_credited == 1000

    def test_both_seats_win_release(self, calc: SettlementCalculator) -> None:
        b = calc.vote_resolved(
            _order(), _app(), refund_amount=400, refund=False,
            seats_involved=2, winning_seat_owners=["mod-a", "mod-b"],
        )
        assert b.resolution == Resolution.VOTE_RELEASE
        assert b.credited_to("carol") == 970
        assert b.credited_to("bob") == 0
        assert b.credited_to("mod-a") == 10
        assert b.credited_to("mod-b") == 10
        assert b.credited_to("alice") == 10

    def test_rejects_too_many_winners(self, calc: SettlementCalculator) -> None:
        with pytest.raises(InvalidArgument):
            calc.vote_resolved(
                _order(), _app(), 400, True, seats_involved=1,
                winning_seat_owners=["a", "b"],
            )

    @pytest.mark.parametrize("amount", [1, 7, 99, 101, 999, 12345, 10**9 + 7])
    @pytest.mark.parametrize("mod_pct,owner_pct", [(0, 0), (1, 1), (14, 44), (7, 3)])
    def test_conservation_within_dust(
        self, calc: SettlementCalculator, amount: int, mod_pct: int, owner_pct: int,
    ) -> None:
        refund = max(1, amount // 3)
        app = _app(mod_pct, owner_pct)
        for seats, winners in ((1, ["m"]), (2, ["m1"]), (2, ["m1", "m2"])):
            for refund_flag in (True, False):
                b = calc.vote_resolved(
                    _order(amount), app, refund, refund_flag, seats, winners,
                )
                # One truncation per commission line and per net payout.
                assert 0 <= b.dust <= 2 + seats
        for b in (
            calc.seller_agreed(_order(amount), app, refund),
            calc.seller_claimed(_order(amount), app),
        ):
            assert 0 <= b.dust <= 3
