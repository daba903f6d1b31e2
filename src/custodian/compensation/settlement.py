"""Settlement calculator — splits an order's amount into ledger credits.

Pure computation: given an order, its app and (where relevant) its
dispute and panel result, return a SettlementBreakdown. Nothing here
touches the ledger, the order store or the event log.

Numeric contract (bit-for-bit, tested):
    share(x, pct) = x * pct // 100        truncating, never rounded
    net(x, pct)   = x * (100 - pct) // 100

Per resolution path:

    confirmed        seller  = amount
    seller_agreed    owner   = share(amount, owner_pct)
                     buyer   = net(refund, owner_pct)
                     seller  = net(amount - refund, owner_pct)
    seller_claimed   owner   = share(amount, owner_pct)
                     seller  = net(amount, owner_pct)
    buyer_claimed    as seller_agreed
    vote_*           total   = owner_pct + seats * mod_pct
                     each winning seat owner = share(amount, mod_pct)
                     owner   = share(amount, owner_pct)
                               + unearned seats * share(amount, mod_pct)
                     refund:  buyer = net(refund, total),
                              seller = net(amount - refund, total)
                     release: seller = net(amount, total)

Truncation leaves at most one unit of dust per division in custody;
conservation holds as sum(credits) + dust == amount.
"""

from __future__ import annotations

from typing import Sequence

from custodian.errors import InvalidArgument
from custodian.models.escrow import (
    App,
    Credit,
    Order,
    Resolution,
    SettlementBreakdown,
)


def share(amount: int, pct: int) -> int:
    """Commission share of ``amount`` at ``pct`` percent, truncated."""
    return amount * pct // 100


def net(amount: int, pct: int) -> int:
    """What remains of ``amount`` after ``pct`` percent, truncated."""
    return amount * (100 - pct) // 100


class SettlementCalculator:
    """Computes settlement breakdowns for every resolution path.

    Usage:
        calc = SettlementCalculator()
        breakdown = calc.seller_agreed(order, app, refund_amount=400)
        for credit in breakdown.credits:
            ledger.credit(credit.participant, order.asset, credit.amount)
    """

    def confirmed(self, order: Order, app: App) -> SettlementBreakdown:
        """Buyer confirmed delivery: seller takes everything, no commission."""
        return self._build(
            order, app, Resolution.CONFIRMED, seats_involved=0,
            credits=[Credit(order.seller, order.amount, "seller")],
        )

    def seller_agreed(
        self, order: Order, app: App, refund_amount: int,
    ) -> SettlementBreakdown:
        """Seller consented to the refund. Owner commission only."""
        return self._refund_split(order, app, refund_amount, Resolution.SELLER_AGREED)

    def buyer_claimed(
        self, order: Order, app: App, refund_amount: int,
    ) -> SettlementBreakdown:
        """Seller let the refuse window lapse; the buyer takes the refund."""
        return self._refund_split(order, app, refund_amount, Resolution.BUYER_CLAIMED)

    def seller_claimed(self, order: Order, app: App) -> SettlementBreakdown:
        """Buyer never acted before the claim deadline."""
        pct = app.owner_commission_pct
        return self._build(
            order, app, Resolution.SELLER_CLAIMED, seats_involved=0,
            credits=[
                Credit(app.owner, share(order.amount, pct), "app_owner"),
                Credit(order.seller, net(order.amount, pct), "seller"),
            ],
        )

    def vote_resolved(
        self,
        order: Order,
        app: App,
        refund_amount: int,
        refund: bool,
        seats_involved: int,
        winning_seat_owners: Sequence[str],
    ) -> SettlementBreakdown:
        """Moderator panel (or tie-break) decided the dispute.

        ``winning_seat_owners`` lists one owner per seat whose vote matched
        the outcome (a single-owner panel counts once). The app owner
        absorbs the moderator share of every seat that did not earn it.
        """
        if seats_involved not in (1, 2):
            raise InvalidArgument(f"seats_involved must be 1 or 2, got {seats_involved}")
        if len(winning_seat_owners) > seats_involved:
            raise InvalidArgument("More winning seats than seats involved")
        self._check_refund(order, refund_amount)

        mod_pct = app.moderator_commission_pct
        owner_pct = app.owner_commission_pct
        total_pct = owner_pct + seats_involved * mod_pct
        mod_share = share(order.amount, mod_pct)
        unearned = seats_involved - len(winning_seat_owners)

        credits = [
            Credit(app.owner, share(order.amount, owner_pct) + unearned * mod_share, "app_owner"),
        ]
        credits.extend(Credit(o, mod_share, "moderator") for o in winning_seat_owners)
        if refund:
            credits.append(Credit(order.buyer, net(refund_amount, total_pct), "buyer"))
            if order.amount > refund_amount:
                credits.append(
                    Credit(order.seller, net(order.amount - refund_amount, total_pct), "seller")
                )
            resolution = Resolution.VOTE_REFUND
        else:
            credits.append(Credit(order.seller, net(order.amount, total_pct), "seller"))
            resolution = Resolution.VOTE_RELEASE

        return self._build(order, app, resolution, seats_involved, credits)

    def _refund_split(
        self,
        order: Order,
        app: App,
        refund_amount: int,
        resolution: Resolution,
    ) -> SettlementBreakdown:
        self._check_refund(order, refund_amount)
        pct = app.owner_commission_pct
        credits = [
            Credit(app.owner, share(order.amount, pct), "app_owner"),
            Credit(order.buyer, net(refund_amount, pct), "buyer"),
        ]
        if order.amount > refund_amount:
            credits.append(Credit(order.seller, net(order.amount - refund_amount, pct), "seller"))
        return self._build(order, app, resolution, 0, credits)

    @staticmethod
    def _check_refund(order: Order, refund_amount: int) -> None:
        if not 0 < refund_amount <= order.amount:
            raise InvalidArgument(
                f"Refund amount {refund_amount} outside (0, {order.amount}]"
            )

    @staticmethod
    def _build(
        order: Order,
        app: App,
        resolution: Resolution,
        seats_involved: int,
        credits: list[Credit],
    ) -> SettlementBreakdown:
        breakdown = SettlementBreakdown(
            order_id=order.order_id,
            resolution=resolution,
            amount=order.amount,
            owner_commission_pct=app.owner_commission_pct,
            moderator_commission_pct=app.moderator_commission_pct,
            seats_involved=seats_involved,
            credits=tuple(c for c in credits if c.amount > 0),
        )
        if breakdown.dust < 0:
            raise ValueError(
                f"Settlement for order {order.order_id} credits "
                f"{breakdown.total_credited}, more than the escrowed {order.amount}"
            )
        return breakdown
