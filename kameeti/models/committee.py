"""
Core Data Models for the Committee Ledger

These models define the strict schemas for everything the ledger holds.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the persisted camelCase layout
4. Stay immutable so a snapshot can never be changed in place

DESIGN DECISION: Entities are frozen pydantic models.
A mutation never edits an entity; it builds a replacement with
model_copy(update=...) and swaps the whole snapshot.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


MONTH_YEAR_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def new_entity_id() -> str:
    """Generate an opaque identifier for a new entity."""
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class ShareType(str, Enum):
    """
    How much of a payout slot a member holds.

    Two HALF members pair up to fill one slot.
    """
    FULL = "FULL"
    HALF = "HALF"


# =============================================================================
# BASE
# =============================================================================

class LedgerModel(BaseModel):
    """Shared configuration: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


# =============================================================================
# ENTITIES
# =============================================================================

class Committee(LedgerModel):
    """
    A rotating savings group.

    CRITICAL: duration_months is derived from the member set.
    Callers never write it; the engine recomputes it after
    every member mutation.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique committee ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Committee name"
    )
    monthly_amount: Decimal = Field(
        ...,
        gt=0,
        description="Contribution each payer makes per month"
    )
    start_date: date = Field(
        ...,
        description="Calendar date of the first month"
    )
    duration_months: int = Field(
        default=0,
        ge=0,
        description="Number of payout slots (derived)"
    )
    allow_half_share: bool = Field(
        default=False,
        description="Whether HALF-share members may join"
    )

    @property
    def total_payout(self) -> Decimal:
        """The whole pool one winner takes."""
        return self.monthly_amount * self.duration_months


class Member(LedgerModel):
    """
    A committee member.

    A HALF member always carries a pair_id: its partner's canonical
    pair id when paired, or its own id when unpaired.
    """

    id: str = Field(..., min_length=1)
    committee_id: str = Field(..., min_length=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Member name"
    )
    phone: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Contact number"
    )
    share_type: ShareType = Field(
        default=ShareType.FULL,
        description="FULL or HALF share"
    )
    pair_id: Optional[str] = Field(
        default=None,
        description="Canonical pair id (HALF only)"
    )

    @field_validator('pair_id', mode='before')
    @classmethod
    def blank_pair_id_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_pairing(self) -> 'Member':
        """HALF members must always carry a pair id."""
        if self.share_type == ShareType.HALF and self.pair_id is None:
            raise ValueError("HALF-share member must have a pair id")
        return self

    @property
    def is_half(self) -> bool:
        return self.share_type == ShareType.HALF


class Payment(LedgerModel):
    """
    One monthly contribution from a payer (a FULL member or a HALF pair).

    late_days and demerit_points are derived from date_paid.
    """

    id: str = Field(..., min_length=1)
    committee_id: str = Field(..., min_length=1)
    member_id_or_pair_id: str = Field(
        ...,
        min_length=1,
        description="Member id (FULL) or canonical pair id (HALF pair)"
    )
    month_year: str = Field(
        ...,
        pattern=MONTH_YEAR_PATTERN,
        description="Month the contribution covers (YYYY-MM)"
    )
    amount: Decimal = Field(..., gt=0)
    date_paid: date
    late_days: int = Field(default=0, ge=0)
    demerit_points: int = Field(default=0, ge=0)

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.committee_id, self.member_id_or_pair_id, self.month_year)


class Draw(LedgerModel):
    """The monthly payout event awarding the pool to one payer."""

    id: str = Field(..., min_length=1)
    committee_id: str = Field(..., min_length=1)
    month_year: str = Field(..., pattern=MONTH_YEAR_PATTERN)
    winner_id_or_pair_id: str = Field(..., min_length=1)
    payout_date: date
    amount: Decimal = Field(..., gt=0)


class LedgerSnapshot(LedgerModel):
    """
    The complete ledger state.

    Replaced atomically on every mutation. Serializes to the
    persisted layout {committees, members, payments, draws}.
    """

    committees: tuple[Committee, ...] = ()
    members: tuple[Member, ...] = ()
    payments: tuple[Payment, ...] = ()
    draws: tuple[Draw, ...] = ()

    @classmethod
    def empty(cls) -> 'LedgerSnapshot':
        return cls()

    @classmethod
    def from_document(cls, document: dict) -> 'LedgerSnapshot':
        """
        Build a snapshot from a persisted document.

        Raises ValueError if any of the four collections is missing.
        Raises pydantic.ValidationError if an entity is malformed.
        """
        missing = [
            key for key in ("committees", "members", "payments", "draws")
            if key not in document
        ]
        if missing:
            raise ValueError(f"Snapshot document missing collections: {missing}")
        return cls.model_validate(document)

    def to_document(self) -> dict:
        """Serialize to the JSON-ready persisted layout."""
        return self.model_dump(mode="json", by_alias=True)

    def replace(self, **collections) -> 'LedgerSnapshot':
        """Return a new snapshot with some collections swapped out."""
        return self.model_copy(
            update={key: tuple(value) for key, value in collections.items()}
        )


# =============================================================================
# INPUT MODELS - what callers may supply
# =============================================================================

class CommitteeInput(LedgerModel):
    """Caller-supplied committee fields (no id, no duration)."""

    name: str = Field(..., min_length=1, max_length=200)
    monthly_amount: Decimal = Field(..., gt=0)
    start_date: date
    allow_half_share: bool = False


class MemberInput(LedgerModel):
    """
    Caller-supplied member fields.

    partner_id is a pairing request, not a stored value.
    """

    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=50)
    share_type: ShareType = ShareType.FULL
    partner_id: Optional[str] = None

    @field_validator('partner_id', mode='before')
    @classmethod
    def blank_partner_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PaymentInput(LedgerModel):
    """Caller-supplied payment fields. Lateness is never accepted."""

    member_id_or_pair_id: str = Field(..., min_length=1)
    month_year: str = Field(..., pattern=MONTH_YEAR_PATTERN)
    date_paid: date
    amount: Optional[Decimal] = Field(default=None, gt=0)


class DrawInput(LedgerModel):
    """Caller-supplied draw fields. Month and amount default from the committee."""

    winner_id_or_pair_id: str = Field(..., min_length=1)
    payout_date: date
    month_year: Optional[str] = Field(default=None, pattern=MONTH_YEAR_PATTERN)
    amount: Optional[Decimal] = Field(default=None, gt=0)


# =============================================================================
# PROJECTION MODELS - read-only views, never persisted
# =============================================================================

class PayerRow(LedgerModel):
    """
    One row of the payments grid.

    A FULL member is keyed by its own id; a complete HALF pair
    is keyed by its canonical pair id.
    """

    id: str
    name: str
    share_type: ShareType
    member_ids: tuple[str, ...]


class PaymentGrid(LedgerModel):
    """Months x payers view of a committee's payments."""

    committee_id: str
    months: tuple[str, ...] = ()
    rows: tuple[PayerRow, ...] = ()
    cells: dict[tuple[str, str], Payment] = Field(default_factory=dict)

    @staticmethod
    def cell_key(payer_id: str, month_year: str) -> tuple[str, str]:
        return (payer_id, month_year)

    def payment_for(self, payer_id: str, month_year: str) -> Optional[Payment]:
        return self.cells.get(self.cell_key(payer_id, month_year))

    def is_paid(self, payer_id: str, month_year: str) -> bool:
        return self.payment_for(payer_id, month_year) is not None


class CommitteeSummary(LedgerModel):
    """Headline figures for a committee."""

    committee_id: str
    member_count: int = Field(ge=0)
    payer_count: int = Field(ge=0)
    duration_months: int = Field(ge=0)
    total_payout: Decimal
    draws_recorded: int = Field(ge=0)
    draws_remaining: int = Field(ge=0)
    total_collected: Decimal
    demerits_by_payer: dict[str, int] = Field(default_factory=dict)

    @property
    def can_record_draw(self) -> bool:
        return self.draws_remaining > 0
