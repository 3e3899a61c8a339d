"""
Read-Only Ledger Projections

DESIGN DECISION: Views are DERIVED, never stored.
Presentation layers ask for the payments grid, the eligible winners or a
committee summary and get a fresh answer computed from the current
snapshot. Nothing here can change state.

GUARANTEES:
- Only reflects what is in the snapshot
- Recomputed on every call
- Unknown committee ids yield empty views, not errors
"""

from decimal import Decimal
from typing import Optional

from kameeti.ledger.calculations import (
    group_half_members,
    month_offset,
    month_sequence,
    payout_amount,
)
from kameeti.models.committee import (
    Committee,
    CommitteeSummary,
    Draw,
    LedgerSnapshot,
    Member,
    PayerRow,
    Payment,
    PaymentGrid,
    ShareType,
)


DEFAULT_PAIR_SEPARATOR = " & "


# =============================================================================
# FILTERS
# =============================================================================

def find_committee(snapshot: LedgerSnapshot, committee_id: str) -> Optional[Committee]:
    return next((c for c in snapshot.committees if c.id == committee_id), None)


def committee_members(snapshot: LedgerSnapshot, committee_id: str) -> list[Member]:
    return [m for m in snapshot.members if m.committee_id == committee_id]


def committee_payments(snapshot: LedgerSnapshot, committee_id: str) -> list[Payment]:
    return [p for p in snapshot.payments if p.committee_id == committee_id]


def committee_draws(snapshot: LedgerSnapshot, committee_id: str) -> list[Draw]:
    """Draws of a committee ordered by month."""
    draws = [d for d in snapshot.draws if d.committee_id == committee_id]
    return sorted(draws, key=lambda d: d.month_year)


# =============================================================================
# PAYERS
# =============================================================================

def _pair_row(
    pair_id: str,
    members: list[Member],
    separator: str,
) -> PayerRow:
    return PayerRow(
        id=pair_id,
        name=separator.join(m.name for m in members),
        share_type=ShareType.HALF,
        member_ids=tuple(m.id for m in members),
    )


def payer_rows(
    snapshot: LedgerSnapshot,
    committee_id: str,
    separator: str = DEFAULT_PAIR_SEPARATOR,
) -> list[PayerRow]:
    """
    Rows of the payments grid.

    FULL members first (one row each), then complete HALF pairs keyed by
    their canonical pair id. Unpaired HALF members have no row.
    """
    members = committee_members(snapshot, committee_id)
    rows = [
        PayerRow(
            id=m.id,
            name=m.name,
            share_type=ShareType.FULL,
            member_ids=(m.id,),
        )
        for m in members
        if m.share_type == ShareType.FULL
    ]
    for pair_id, group in group_half_members(committee_id, members).items():
        if len(group) == 2:
            rows.append(_pair_row(pair_id, group, separator))
    return rows


def payer_name(
    snapshot: LedgerSnapshot,
    committee_id: str,
    payer_id: str,
    separator: str = DEFAULT_PAIR_SEPARATOR,
) -> Optional[str]:
    """Display name for a member id or pair id; None if it resolves to nobody."""
    members = committee_members(snapshot, committee_id)
    pair_members = [
        m for m in members
        if m.is_half and m.pair_id == payer_id
    ]
    if len(pair_members) > 1:
        return separator.join(m.name for m in pair_members)
    member = next((m for m in members if m.id == payer_id), None)
    return member.name if member else None


def unpaired_half_members(
    snapshot: LedgerSnapshot,
    committee_id: str,
    exclude_member_id: Optional[str] = None,
) -> list[Member]:
    """
    HALF members still waiting for a partner, i.e. valid pairing targets.

    A member whose pair id is its own id may still be the smaller half of
    a complete pair, so group sizes decide.
    """
    groups = group_half_members(committee_id, committee_members(snapshot, committee_id))
    return [
        group[0] for pair_id, group in groups.items()
        if len(group) == 1
        and group[0].id == pair_id
        and group[0].id != exclude_member_id
    ]


def partner_of(snapshot: LedgerSnapshot, member: Member) -> Optional[Member]:
    """The other half of a paired HALF member, if any."""
    if not member.is_half or not member.pair_id:
        return None
    return next(
        (
            m for m in snapshot.members
            if m.id != member.id
            and m.committee_id == member.committee_id
            and m.is_half
            and m.pair_id == member.pair_id
        ),
        None,
    )


# =============================================================================
# GRID
# =============================================================================

def month_columns(committee: Committee) -> list[str]:
    """One month token per payout slot, starting from the start date's month."""
    return month_sequence(committee.start_date, committee.duration_months)


def payment_grid(
    snapshot: LedgerSnapshot,
    committee_id: str,
    separator: str = DEFAULT_PAIR_SEPARATOR,
) -> PaymentGrid:
    committee = find_committee(snapshot, committee_id)
    if committee is None:
        return PaymentGrid(committee_id=committee_id)

    cells = {
        PaymentGrid.cell_key(p.member_id_or_pair_id, p.month_year): p
        for p in committee_payments(snapshot, committee_id)
    }
    return PaymentGrid(
        committee_id=committee_id,
        months=tuple(month_columns(committee)),
        rows=tuple(payer_rows(snapshot, committee_id, separator)),
        cells=cells,
    )


def completed_months(grid: PaymentGrid) -> set[str]:
    """Months in which every payer row has paid. Empty when there are no rows."""
    if not grid.rows:
        return set()
    return {
        month for month in grid.months
        if all(grid.is_paid(row.id, month) for row in grid.rows)
    }


# =============================================================================
# DRAWS
# =============================================================================

def winners_so_far(snapshot: LedgerSnapshot, committee_id: str) -> set[str]:
    return {d.winner_id_or_pair_id for d in snapshot.draws if d.committee_id == committee_id}


def eligible_winners(
    snapshot: LedgerSnapshot,
    committee_id: str,
    editing_draw: Optional[Draw] = None,
    separator: str = DEFAULT_PAIR_SEPARATOR,
) -> list[PayerRow]:
    """
    Payers who have not won yet.

    When editing a draw, its current winner is listed first so the
    edit can keep it.
    """
    won = winners_so_far(snapshot, committee_id)
    eligible = [
        row for row in payer_rows(snapshot, committee_id, separator)
        if row.id not in won
    ]
    if editing_draw is None:
        return eligible

    current_id = editing_draw.winner_id_or_pair_id
    name = payer_name(snapshot, committee_id, current_id, separator)
    if name is None:
        return eligible
    share_type = ShareType.FULL
    member_ids: tuple[str, ...] = (current_id,)
    pair_members = [
        m for m in committee_members(snapshot, committee_id)
        if m.is_half and m.pair_id == current_id
    ]
    if len(pair_members) > 1:
        share_type = ShareType.HALF
        member_ids = tuple(m.id for m in pair_members)
    current = PayerRow(
        id=current_id,
        name=name,
        share_type=share_type,
        member_ids=member_ids,
    )
    return [current] + [row for row in eligible if row.id != current_id]


def next_draw_month(snapshot: LedgerSnapshot, committee_id: str) -> Optional[str]:
    """Start month plus the number of draws already recorded."""
    committee = find_committee(snapshot, committee_id)
    if committee is None:
        return None
    draw_count = sum(1 for d in snapshot.draws if d.committee_id == committee_id)
    return month_offset(committee.start_date, draw_count)


# =============================================================================
# SUMMARY
# =============================================================================

def committee_summary(
    snapshot: LedgerSnapshot,
    committee_id: str,
) -> Optional[CommitteeSummary]:
    """Headline figures for a committee, or None if it doesn't exist."""
    committee = find_committee(snapshot, committee_id)
    if committee is None:
        return None

    payments = committee_payments(snapshot, committee_id)
    draws_recorded = sum(1 for d in snapshot.draws if d.committee_id == committee_id)

    demerits: dict[str, int] = {}
    for payment in payments:
        demerits[payment.member_id_or_pair_id] = (
            demerits.get(payment.member_id_or_pair_id, 0) + payment.demerit_points
        )

    return CommitteeSummary(
        committee_id=committee_id,
        member_count=len(committee_members(snapshot, committee_id)),
        payer_count=len(payer_rows(snapshot, committee_id)),
        duration_months=committee.duration_months,
        total_payout=payout_amount(committee),
        draws_recorded=draws_recorded,
        draws_remaining=max(committee.duration_months - draws_recorded, 0),
        total_collected=sum((p.amount for p in payments), Decimal("0")),
        demerits_by_payer=demerits,
    )
