"""Tests for the read-only ledger projections."""

import pytest
from datetime import date
from decimal import Decimal

from kameeti.ledger import projection
from kameeti.models.committee import (
    Committee,
    Draw,
    LedgerSnapshot,
    Member,
    Payment,
    ShareType,
)


def _member(member_id, share_type=ShareType.FULL, pair_id=None, committee_id="c1"):
    return Member(
        id=member_id,
        committee_id=committee_id,
        name=member_id.upper(),
        phone="0300",
        share_type=share_type,
        pair_id=pair_id,
    )


def _payment(payer, month_year, paid, late_days=0, committee_id="c1"):
    return Payment(
        id=f"p-{payer}-{month_year}",
        committee_id=committee_id,
        member_id_or_pair_id=payer,
        month_year=month_year,
        amount=Decimal("1000"),
        date_paid=paid,
        late_days=late_days,
        demerit_points=late_days,
    )


def _draw(draw_id, winner, month_year, committee_id="c1"):
    return Draw(
        id=draw_id,
        committee_id=committee_id,
        month_year=month_year,
        winner_id_or_pair_id=winner,
        payout_date=date(2024, 1, 20),
        amount=Decimal("3000"),
    )


@pytest.fixture
def snapshot():
    """Two FULL members, one complete pair and one lone HALF member."""
    committee = Committee(
        id="c1",
        name="Street",
        monthly_amount=Decimal("1000"),
        start_date=date(2024, 11, 1),
        duration_months=3,
        allow_half_share=True,
    )
    other = Committee(
        id="c2",
        name="Other",
        monthly_amount=Decimal("500"),
        start_date=date(2024, 1, 1),
        duration_months=1,
    )
    return LedgerSnapshot(
        committees=(committee, other),
        members=(
            _member("h1", ShareType.HALF, "h1"),
            _member("a"),
            _member("h2", ShareType.HALF, "h1"),
            _member("b"),
            _member("h3", ShareType.HALF, "h3"),
            _member("z", committee_id="c2"),
        ),
    )


class TestPayers:
    """Tests for payer rows and pairing lookups."""

    def test_payer_rows_full_first_then_pairs(self, snapshot):
        """Test row order and that lone HALF members have no row."""
        rows = projection.payer_rows(snapshot, "c1")
        assert [r.id for r in rows] == ["a", "b", "h1"]
        assert rows[2].name == "H1 & H2"
        assert rows[2].member_ids == ("h1", "h2")
        assert rows[2].share_type == ShareType.HALF

    def test_custom_separator(self, snapshot):
        """Test the pair display separator."""
        rows = projection.payer_rows(snapshot, "c1", separator=" / ")
        assert rows[2].name == "H1 / H2"

    def test_payer_name(self, snapshot):
        """Test resolving names for members and pairs."""
        assert projection.payer_name(snapshot, "c1", "a") == "A"
        assert projection.payer_name(snapshot, "c1", "h1") == "H1 & H2"
        assert projection.payer_name(snapshot, "c1", "missing") is None

    def test_unpaired_half_members(self, snapshot):
        """Test that the smaller half of a pair is not offered as a partner."""
        unpaired = projection.unpaired_half_members(snapshot, "c1")
        assert [m.id for m in unpaired] == ["h3"]
        assert projection.unpaired_half_members(snapshot, "c1", exclude_member_id="h3") == []

    def test_partner_of(self, snapshot):
        """Test finding the other half."""
        members = {m.id: m for m in snapshot.members}
        assert projection.partner_of(snapshot, members["h1"]).id == "h2"
        assert projection.partner_of(snapshot, members["h2"]).id == "h1"
        assert projection.partner_of(snapshot, members["h3"]) is None
        assert projection.partner_of(snapshot, members["a"]) is None


class TestPaymentGrid:
    """Tests for the payments grid."""

    def test_grid_shape(self, snapshot):
        """Test one column per slot and one row per payer."""
        grid = projection.payment_grid(snapshot, "c1")
        assert grid.months == ("2024-11", "2024-12", "2025-01")
        assert len(grid.rows) == 3

    def test_unknown_committee_gives_empty_grid(self, snapshot):
        """Test that a missing committee is an empty view."""
        grid = projection.payment_grid(snapshot, "nope")
        assert grid.months == ()
        assert grid.rows == ()

    def test_completed_months(self, snapshot):
        """Test that a month completes only when every payer has paid."""
        paid = date(2024, 11, 5)
        snapshot = snapshot.replace(
            payments=[
                _payment("a", "2024-11", paid),
                _payment("b", "2024-11", paid),
                _payment("h1", "2024-11", paid),
                _payment("a", "2024-12", paid),
            ]
        )
        grid = projection.payment_grid(snapshot, "c1")
        assert grid.is_paid("h1", "2024-11")
        assert projection.completed_months(grid) == {"2024-11"}


class TestDraws:
    """Tests for draw projections."""

    def test_eligible_excludes_winners(self, snapshot):
        """Test that winners are not eligible again."""
        snapshot = snapshot.replace(draws=[_draw("d1", "h1", "2024-11")])
        eligible = projection.eligible_winners(snapshot, "c1")
        assert [r.id for r in eligible] == ["a", "b"]

    def test_editing_pair_draw(self, snapshot):
        """Test that the current pair winner is listed first with its members."""
        draw = _draw("d1", "h1", "2024-11")
        snapshot = snapshot.replace(draws=[draw])
        eligible = projection.eligible_winners(snapshot, "c1", editing_draw=draw)
        assert [r.id for r in eligible] == ["h1", "a", "b"]
        assert eligible[0].member_ids == ("h1", "h2")

    def test_editing_draw_with_vanished_winner(self, snapshot):
        """Test that a winner that no longer exists is simply left out."""
        draw = _draw("d1", "gone", "2024-11")
        snapshot = snapshot.replace(draws=[draw])
        eligible = projection.eligible_winners(snapshot, "c1", editing_draw=draw)
        assert [r.id for r in eligible] == ["a", "b", "h1"]

    def test_draws_sorted_by_month(self, snapshot):
        """Test draw ordering."""
        snapshot = snapshot.replace(
            draws=[_draw("d2", "b", "2024-12"), _draw("d1", "a", "2024-11")]
        )
        assert [d.id for d in projection.committee_draws(snapshot, "c1")] == ["d1", "d2"]

    def test_next_draw_month(self, snapshot):
        """Test that the next month is positional."""
        assert projection.next_draw_month(snapshot, "c1") == "2024-11"
        snapshot = snapshot.replace(draws=[_draw("d1", "a", "2024-11")])
        assert projection.next_draw_month(snapshot, "c1") == "2024-12"
        assert projection.next_draw_month(snapshot, "nope") is None


class TestSummary:
    """Tests for the committee summary."""

    def test_summary(self, snapshot):
        """Test headline figures."""
        snapshot = snapshot.replace(
            payments=[
                _payment("a", "2024-11", date(2024, 11, 15), late_days=5),
                _payment("a", "2024-12", date(2024, 12, 12), late_days=2),
                _payment("h1", "2024-11", date(2024, 11, 1)),
            ],
            draws=[_draw("d1", "a", "2024-11")],
        )
        summary = projection.committee_summary(snapshot, "c1")
        assert summary.member_count == 5
        assert summary.payer_count == 3
        assert summary.total_payout == Decimal("3000")
        assert summary.draws_recorded == 1
        assert summary.draws_remaining == 2
        assert summary.total_collected == Decimal("3000")
        assert summary.demerits_by_payer == {"a": 7, "h1": 0}
        assert summary.can_record_draw

    def test_summary_unknown_committee(self, snapshot):
        """Test that a missing committee has no summary."""
        assert projection.committee_summary(snapshot, "nope") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
