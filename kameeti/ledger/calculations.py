"""
Ledger Calculations

Pure functions behind the derived fields:
- month arithmetic on YYYY-MM tokens
- committee duration from the member set
- canonical pair ids
- late days and demerit points
- the payout pool

Nothing here touches engine state; every function takes what it needs.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from kameeti.models.committee import Committee, Member, ShareType


DEFAULT_DUE_DAY = 10


# =============================================================================
# MONTHS
# =============================================================================

def parse_month_year(month_year: str) -> tuple[int, int]:
    """Split a YYYY-MM token into (year, month)."""
    year_str, month_str = month_year.split("-")
    year, month = int(year_str), int(month_str)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in {month_year!r}")
    return year, month


def format_month_year(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_offset(start: date, offset: int) -> str:
    """Month token `offset` months after the month containing `start`."""
    index = start.year * 12 + (start.month - 1) + offset
    return format_month_year(index // 12, index % 12 + 1)


def month_sequence(start: date, count: int) -> list[str]:
    """`count` consecutive month tokens beginning with start's month."""
    return [month_offset(start, i) for i in range(max(count, 0))]


# =============================================================================
# PAIRING & DURATION
# =============================================================================

def canonical_pair_id(member_id: str, partner_id: str) -> str:
    """Order-independent pair key: the lexicographically smaller id."""
    return min(member_id, partner_id)


def group_half_members(
    committee_id: str,
    members: Iterable[Member],
) -> dict[str, list[Member]]:
    """HALF members of a committee grouped by pair id, in insertion order."""
    groups: dict[str, list[Member]] = defaultdict(list)
    for member in members:
        if (
            member.committee_id == committee_id
            and member.is_half
            and member.pair_id
        ):
            groups[member.pair_id].append(member)
    return dict(groups)


def derive_duration(committee_id: str, members: Iterable[Member]) -> int:
    """
    Number of payout slots a committee has.

    Each FULL member is one slot. HALF members only count once two of
    them share a pair id; a lone unpaired HALF member adds nothing.
    """
    members = list(members)
    full_count = sum(
        1 for m in members
        if m.committee_id == committee_id and m.share_type == ShareType.FULL
    )
    complete_pairs = sum(
        1 for group in group_half_members(committee_id, members).values()
        if len(group) == 2
    )
    return full_count + complete_pairs


# =============================================================================
# LATENESS
# =============================================================================

def payment_due_date(month_year: str, due_day: int = DEFAULT_DUE_DAY) -> date:
    """A month's contribution falls due on `due_day` of that month."""
    year, month = parse_month_year(month_year)
    return date(year, month, due_day)


def calculate_late_days(
    month_year: str,
    date_paid: date,
    due_day: int = DEFAULT_DUE_DAY,
) -> int:
    """Whole days past the due date; zero when paid on or before it."""
    return max(0, (date_paid - payment_due_date(month_year, due_day)).days)


def calculate_demerits(
    month_year: str,
    date_paid: date,
    due_day: int = DEFAULT_DUE_DAY,
) -> tuple[int, int]:
    """
    Returns (late_days, demerit_points).

    One demerit point per late day, no cap and no decay.
    """
    late_days = calculate_late_days(month_year, date_paid, due_day)
    return late_days, late_days


# =============================================================================
# PAYOUT
# =============================================================================

def payout_amount(committee: Committee) -> Decimal:
    """Each winner takes the whole pool once: monthly amount x duration."""
    return committee.monthly_amount * committee.duration_months
