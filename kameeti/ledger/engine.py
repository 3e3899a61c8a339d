"""
Committee Ledger Engine

This module owns the single ledger snapshot and every operation that
changes it:
1. Committees (add, update, cascading delete)
2. Members (add, update, delete, with the half-share pairing protocol)
3. Payments (record, edit, delete, with derived lateness)
4. Draws (record, edit, delete)
5. Undo

DESIGN DECISION: Every mutation builds a complete next snapshot first and
only then swaps it in. A rejection raised while building leaves the
current snapshot and the undo history exactly as they were.

After each applied change the snapshot is handed to storage. A failed
write is logged and ignored; the in-memory snapshot stays authoritative.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional, Union

from pydantic import ValidationError

from kameeti.audit import AuditLogger
from kameeti.config import LedgerSettings, get_settings
from kameeti.ledger import projection
from kameeti.ledger.calculations import (
    calculate_demerits,
    canonical_pair_id,
    derive_duration,
    payout_amount,
)
from kameeti.ledger.errors import (
    DuplicatePaymentError,
    DurationBelowDrawsError,
    EntityNotFoundError,
    HalfShareNotAllowedError,
    LedgerRejectedError,
    LedgerValidationError,
)
from kameeti.ledger.history import SnapshotHistory
from kameeti.models.committee import (
    Committee,
    CommitteeInput,
    CommitteeSummary,
    Draw,
    DrawInput,
    LedgerSnapshot,
    Member,
    MemberInput,
    PayerRow,
    Payment,
    PaymentGrid,
    PaymentInput,
    ShareType,
    new_entity_id,
)
from kameeti.services.storage import LedgerStorageInterface, StorageError


DateLike = Union[date, str]
AmountLike = Union[Decimal, int, float, str]


class LedgerEngine:
    """
    State container for committees, members, payments and draws.

    Instantiate once and pass by reference to whatever needs it.
    Callers read filtered views and issue mutation calls; they never
    touch entities directly.
    """

    def __init__(
        self,
        snapshot: Optional[LedgerSnapshot] = None,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._snapshot = snapshot or LedgerSnapshot.empty()
        self._history = SnapshotHistory(self._settings.history_limit)
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # STATE & HISTORY
    # =========================================================================

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def history_depth(self) -> int:
        return len(self._history)

    def undo(self) -> bool:
        """
        Revert to the snapshot before the last applied change.

        Returns False (and does nothing) when there is no history.
        """
        previous = self._history.pop()
        if previous is None:
            return False
        self._snapshot = previous
        self._audit.log_undo(len(self._history))
        self._persist()
        return True

    def _commit(self, next_snapshot: LedgerSnapshot) -> None:
        self._history.push(self._snapshot)
        self._snapshot = next_snapshot
        self._persist()

    def _persist(self) -> None:
        if self._storage is None:
            return
        try:
            self._storage.save(self._snapshot.to_document())
        except Exception as e:
            # Log failure but don't raise
            self._audit.log_persistence_failed(str(e))
            return
        self._audit.log_snapshot_saved(snapshot_counts(self._snapshot))

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        """Turn input validation failures into rejections and audit every rejection."""
        try:
            yield
        except ValidationError as e:
            rejection = LedgerValidationError.from_pydantic(e)
            self._audit.log_rejected(name, rejection.reason.value, rejection.message)
            raise rejection from e
        except LedgerRejectedError as e:
            self._audit.log_rejected(name, e.reason.value, e.message, e.entity_id)
            raise

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def committees(self) -> list[Committee]:
        return list(self._snapshot.committees)

    def get_committee(self, committee_id: str) -> Optional[Committee]:
        return projection.find_committee(self._snapshot, committee_id)

    def get_member(self, member_id: str) -> Optional[Member]:
        return next((m for m in self._snapshot.members if m.id == member_id), None)

    def members_of(self, committee_id: str) -> list[Member]:
        return projection.committee_members(self._snapshot, committee_id)

    def payments_of(self, committee_id: str) -> list[Payment]:
        return projection.committee_payments(self._snapshot, committee_id)

    def draws_of(self, committee_id: str) -> list[Draw]:
        return projection.committee_draws(self._snapshot, committee_id)

    def _require_committee(self, committee_id: str) -> Committee:
        committee = self.get_committee(committee_id)
        if committee is None:
            raise EntityNotFoundError("committee", committee_id)
        return committee

    def _require_member(self, member_id: str) -> Member:
        member = self.get_member(member_id)
        if member is None:
            raise EntityNotFoundError("member", member_id)
        return member

    def _require_payment(self, payment_id: str) -> Payment:
        payment = next((p for p in self._snapshot.payments if p.id == payment_id), None)
        if payment is None:
            raise EntityNotFoundError("payment", payment_id)
        return payment

    def _require_draw(self, draw_id: str) -> Draw:
        draw = next((d for d in self._snapshot.draws if d.id == draw_id), None)
        if draw is None:
            raise EntityNotFoundError("draw", draw_id)
        return draw

    # =========================================================================
    # VIEWS
    # =========================================================================

    def payment_grid(self, committee_id: str) -> PaymentGrid:
        return projection.payment_grid(
            self._snapshot, committee_id, self._settings.pair_name_separator
        )

    def payer_rows(self, committee_id: str) -> list[PayerRow]:
        return projection.payer_rows(
            self._snapshot, committee_id, self._settings.pair_name_separator
        )

    def eligible_winners(
        self,
        committee_id: str,
        editing_draw_id: Optional[str] = None,
    ) -> list[PayerRow]:
        editing = None
        if editing_draw_id is not None:
            editing = next(
                (d for d in self._snapshot.draws if d.id == editing_draw_id), None
            )
        return projection.eligible_winners(
            self._snapshot,
            committee_id,
            editing_draw=editing,
            separator=self._settings.pair_name_separator,
        )

    def next_draw_month(self, committee_id: str) -> Optional[str]:
        return projection.next_draw_month(self._snapshot, committee_id)

    def summary(self, committee_id: str) -> Optional[CommitteeSummary]:
        return projection.committee_summary(self._snapshot, committee_id)

    # =========================================================================
    # COMMITTEES
    # =========================================================================

    def add_committee(
        self,
        name: str,
        monthly_amount: AmountLike,
        start_date: DateLike,
        allow_half_share: bool = False,
    ) -> Committee:
        """Create a committee. Its duration starts at zero."""
        with self._operation("add_committee"):
            data = CommitteeInput(
                name=name,
                monthly_amount=monthly_amount,
                start_date=start_date,
                allow_half_share=allow_half_share,
            )
            committee = Committee(
                id=new_entity_id(),
                duration_months=0,
                **data.model_dump(),
            )
            self._commit(
                self._snapshot.replace(
                    committees=[*self._snapshot.committees, committee]
                )
            )

        self._audit.log_created(
            "committee",
            committee.id,
            name=committee.name,
            monthly_amount=str(committee.monthly_amount),
        )
        return committee

    def update_committee(
        self,
        committee_id: str,
        name: str,
        monthly_amount: AmountLike,
        start_date: DateLike,
        allow_half_share: bool,
    ) -> Committee:
        """
        Edit a committee's own fields. Duration is preserved, never written.

        Disabling half-share is rejected while HALF members exist.
        """
        with self._operation("update_committee"):
            existing = self._require_committee(committee_id)
            data = CommitteeInput(
                name=name,
                monthly_amount=monthly_amount,
                start_date=start_date,
                allow_half_share=allow_half_share,
            )
            if not data.allow_half_share and any(
                m.is_half for m in self.members_of(committee_id)
            ):
                raise HalfShareNotAllowedError(
                    "Cannot disable half-shares when half-share members exist",
                    committee_id,
                )

            updated = existing.model_copy(update=data.model_dump())
            self._commit(
                self._snapshot.replace(
                    committees=[
                        updated if c.id == committee_id else c
                        for c in self._snapshot.committees
                    ]
                )
            )

        self._audit.log_updated("committee", committee_id, name=updated.name)
        return updated

    def delete_committee(self, committee_id: str) -> None:
        """Delete a committee together with its members, payments and draws."""
        with self._operation("delete_committee"):
            self._require_committee(committee_id)
            s = self._snapshot
            self._commit(
                s.replace(
                    committees=[c for c in s.committees if c.id != committee_id],
                    members=[m for m in s.members if m.committee_id != committee_id],
                    payments=[p for p in s.payments if p.committee_id != committee_id],
                    draws=[d for d in s.draws if d.committee_id != committee_id],
                )
            )

        self._audit.log_deleted("committee", committee_id)

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def add_member(
        self,
        committee_id: str,
        name: str,
        phone: str,
        share_type: Union[ShareType, str] = ShareType.FULL,
        partner_id: Optional[str] = None,
    ) -> Member:
        """
        Add a member and recompute the committee's duration.

        A HALF member pairs with `partner_id` when that partner is an
        unpaired HALF member of the same committee; otherwise it starts
        unpaired (pair id = own id).
        """
        with self._operation("add_member"):
            committee = self._require_committee(committee_id)
            data = MemberInput(
                name=name,
                phone=phone,
                share_type=share_type,
                partner_id=partner_id,
            )
            self._check_half_share_allowed(committee, data.share_type)

            member_id = new_entity_id()
            members = list(self._snapshot.members)
            pair_id = None
            if data.share_type == ShareType.HALF:
                pair_id = _link_partner(members, member_id, committee_id, data.partner_id)

            member = Member(
                id=member_id,
                committee_id=committee_id,
                name=data.name,
                phone=data.phone,
                share_type=data.share_type,
                pair_id=pair_id,
            )
            members.append(member)
            self._commit(self._with_members(committee_id, members))

        self._audit.log_created(
            "member",
            member.id,
            committee_id=committee_id,
            share_type=member.share_type.value,
            pair_id=member.pair_id,
        )
        return member

    def update_member(
        self,
        member_id: str,
        name: str,
        phone: str,
        share_type: Union[ShareType, str],
        partner_id: Optional[str] = None,
    ) -> Member:
        """
        Edit a member, re-running the pairing protocol.

        The old partner (if any) is unlinked first, then the new pairing
        request is applied exactly as on add.

        Raises HalfShareNotAllowedError for a HALF share in a committee
        without half-shares, and DurationBelowDrawsError when the change
        would leave fewer payout slots than draws already recorded.
        """
        with self._operation("update_member"):
            original = self._require_member(member_id)
            committee = self._require_committee(original.committee_id)
            data = MemberInput(
                name=name,
                phone=phone,
                share_type=share_type,
                partner_id=partner_id,
            )
            self._check_half_share_allowed(committee, data.share_type)

            members = list(self._snapshot.members)
            old_partner = projection.partner_of(self._snapshot, original)
            if old_partner is not None:
                _reset_pairing(members, old_partner.id)

            pair_id = None
            if data.share_type == ShareType.HALF:
                pair_id = _link_partner(
                    members, member_id, committee.id, data.partner_id
                )

            updated = original.model_copy(
                update={
                    "name": data.name,
                    "phone": data.phone,
                    "share_type": data.share_type,
                    "pair_id": pair_id,
                }
            )
            members = [updated if m.id == member_id else m for m in members]
            self._check_duration_covers_draws(committee.id, members, member_id)
            self._commit(self._with_members(committee.id, members))

        self._audit.log_updated(
            "member",
            member_id,
            share_type=updated.share_type.value,
            pair_id=updated.pair_id,
        )
        return updated

    def delete_member(self, member_id: str) -> None:
        """
        Remove a member, unlinking its partner.

        Rejected outright if the committee would end up with fewer
        payout slots than draws already recorded.
        """
        with self._operation("delete_member"):
            member = self._require_member(member_id)
            partner = projection.partner_of(self._snapshot, member)

            members = [m for m in self._snapshot.members if m.id != member_id]
            if partner is not None:
                _reset_pairing(members, partner.id)

            self._check_duration_covers_draws(member.committee_id, members, member_id)
            self._commit(self._with_members(member.committee_id, members))

        self._audit.log_deleted(
            "member",
            member_id,
            committee_id=member.committee_id,
            unlinked_partner=partner.id if partner else None,
        )

    def _check_half_share_allowed(
        self,
        committee: Committee,
        share_type: ShareType,
    ) -> None:
        if share_type == ShareType.HALF and not committee.allow_half_share:
            raise HalfShareNotAllowedError(
                "Committee does not allow half-share members", committee.id
            )

    def _check_duration_covers_draws(
        self,
        committee_id: str,
        members: list[Member],
        member_id: str,
    ) -> None:
        new_duration = derive_duration(committee_id, members)
        draws_recorded = sum(
            1 for d in self._snapshot.draws if d.committee_id == committee_id
        )
        if new_duration < draws_recorded:
            raise DurationBelowDrawsError(member_id, new_duration, draws_recorded)

    def _with_members(self, committee_id: str, members: list[Member]) -> LedgerSnapshot:
        """Next snapshot with a new member set and the committee's duration re-derived."""
        duration = derive_duration(committee_id, members)
        committees = [
            c.model_copy(update={"duration_months": duration})
            if c.id == committee_id else c
            for c in self._snapshot.committees
        ]
        return self._snapshot.replace(committees=committees, members=members)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def add_payment(
        self,
        committee_id: str,
        member_id_or_pair_id: str,
        month_year: str,
        date_paid: DateLike,
        amount: Optional[AmountLike] = None,
    ) -> Payment:
        """
        Record a contribution. Lateness and demerits are derived from date_paid.

        The amount defaults to the committee's monthly amount.
        """
        with self._operation("add_payment"):
            committee = self._require_committee(committee_id)
            data = PaymentInput(
                member_id_or_pair_id=member_id_or_pair_id,
                month_year=month_year,
                date_paid=date_paid,
                amount=amount,
            )
            self._check_payment_unique(committee_id, data)
            payment = self._build_payment(
                new_entity_id(),
                committee_id,
                data,
                data.amount if data.amount is not None else committee.monthly_amount,
            )
            self._commit(
                self._snapshot.replace(payments=[*self._snapshot.payments, payment])
            )

        self._audit.log_created(
            "payment",
            payment.id,
            committee_id=committee_id,
            payer=payment.member_id_or_pair_id,
            month_year=payment.month_year,
            late_days=payment.late_days,
        )
        return payment

    def update_payment(
        self,
        payment_id: str,
        member_id_or_pair_id: str,
        month_year: str,
        date_paid: DateLike,
        amount: Optional[AmountLike] = None,
    ) -> Payment:
        """Edit a payment; lateness and demerits are recomputed. Amount is kept unless given."""
        with self._operation("update_payment"):
            existing = self._require_payment(payment_id)
            data = PaymentInput(
                member_id_or_pair_id=member_id_or_pair_id,
                month_year=month_year,
                date_paid=date_paid,
                amount=amount,
            )
            self._check_payment_unique(existing.committee_id, data, exclude_id=payment_id)
            payment = self._build_payment(
                payment_id,
                existing.committee_id,
                data,
                data.amount if data.amount is not None else existing.amount,
            )
            self._commit(
                self._snapshot.replace(
                    payments=[
                        payment if p.id == payment_id else p
                        for p in self._snapshot.payments
                    ]
                )
            )

        self._audit.log_updated(
            "payment",
            payment_id,
            month_year=payment.month_year,
            late_days=payment.late_days,
        )
        return payment

    def delete_payment(self, payment_id: str) -> None:
        with self._operation("delete_payment"):
            self._require_payment(payment_id)
            self._commit(
                self._snapshot.replace(
                    payments=[p for p in self._snapshot.payments if p.id != payment_id]
                )
            )

        self._audit.log_deleted("payment", payment_id)

    def _build_payment(
        self,
        payment_id: str,
        committee_id: str,
        data: PaymentInput,
        amount: Decimal,
    ) -> Payment:
        late_days, demerit_points = calculate_demerits(
            data.month_year, data.date_paid, self._settings.payment_due_day
        )
        return Payment(
            id=payment_id,
            committee_id=committee_id,
            member_id_or_pair_id=data.member_id_or_pair_id,
            month_year=data.month_year,
            amount=amount,
            date_paid=data.date_paid,
            late_days=late_days,
            demerit_points=demerit_points,
        )

    def _check_payment_unique(
        self,
        committee_id: str,
        data: PaymentInput,
        exclude_id: Optional[str] = None,
    ) -> None:
        if not self._settings.enforce_unique_payments:
            return
        key = (committee_id, data.member_id_or_pair_id, data.month_year)
        clash = next(
            (
                p for p in self._snapshot.payments
                if p.natural_key == key and p.id != exclude_id
            ),
            None,
        )
        if clash is not None:
            raise DuplicatePaymentError(
                data.member_id_or_pair_id, data.month_year, clash.id
            )

    # =========================================================================
    # DRAWS
    # =========================================================================

    def add_draw(
        self,
        committee_id: str,
        winner_id_or_pair_id: str,
        payout_date: DateLike,
        month_year: Optional[str] = None,
        amount: Optional[AmountLike] = None,
    ) -> Draw:
        """
        Record a payout.

        The month defaults to the next slot in sequence (start month plus
        draws so far) and the amount to the full pool.
        """
        with self._operation("add_draw"):
            committee = self._require_committee(committee_id)
            data = DrawInput(
                winner_id_or_pair_id=winner_id_or_pair_id,
                payout_date=payout_date,
                month_year=month_year,
                amount=amount,
            )
            draw = Draw(
                id=new_entity_id(),
                committee_id=committee_id,
                month_year=data.month_year or self.next_draw_month(committee_id),
                winner_id_or_pair_id=data.winner_id_or_pair_id,
                payout_date=data.payout_date,
                amount=data.amount if data.amount is not None else payout_amount(committee),
            )
            self._commit(self._snapshot.replace(draws=[*self._snapshot.draws, draw]))

        self._audit.log_created(
            "draw",
            draw.id,
            committee_id=committee_id,
            month_year=draw.month_year,
            winner=draw.winner_id_or_pair_id,
            amount=str(draw.amount),
        )
        return draw

    def update_draw(
        self,
        draw_id: str,
        winner_id_or_pair_id: str,
        payout_date: DateLike,
        month_year: Optional[str] = None,
        amount: Optional[AmountLike] = None,
    ) -> Draw:
        """Edit a draw. Its month is kept unless given; the amount is re-derived unless given."""
        with self._operation("update_draw"):
            existing = self._require_draw(draw_id)
            committee = self._require_committee(existing.committee_id)
            data = DrawInput(
                winner_id_or_pair_id=winner_id_or_pair_id,
                payout_date=payout_date,
                month_year=month_year,
                amount=amount,
            )
            draw = Draw(
                id=draw_id,
                committee_id=existing.committee_id,
                month_year=data.month_year or existing.month_year,
                winner_id_or_pair_id=data.winner_id_or_pair_id,
                payout_date=data.payout_date,
                amount=data.amount if data.amount is not None else payout_amount(committee),
            )
            self._commit(
                self._snapshot.replace(
                    draws=[draw if d.id == draw_id else d for d in self._snapshot.draws]
                )
            )

        self._audit.log_updated(
            "draw",
            draw_id,
            winner=draw.winner_id_or_pair_id,
            amount=str(draw.amount),
        )
        return draw

    def delete_draw(self, draw_id: str) -> None:
        with self._operation("delete_draw"):
            self._require_draw(draw_id)
            self._commit(
                self._snapshot.replace(
                    draws=[d for d in self._snapshot.draws if d.id != draw_id]
                )
            )

        self._audit.log_deleted("draw", draw_id)


# =============================================================================
# PAIRING HELPERS
# =============================================================================

def _index_of(members: list[Member], member_id: str) -> int:
    return next((i for i, m in enumerate(members) if m.id == member_id), -1)


def _reset_pairing(members: list[Member], member_id: str) -> None:
    """Put a HALF member back into the unpaired state (pair id = own id)."""
    index = _index_of(members, member_id)
    if index > -1:
        members[index] = members[index].model_copy(update={"pair_id": member_id})


def _link_partner(
    members: list[Member],
    member_id: str,
    committee_id: str,
    partner_id: Optional[str],
) -> str:
    """
    Resolve a pairing request and return the pair id for `member_id`.

    Links the partner in `members` when it is an unpaired HALF member of
    the same committee. Any other request falls back to unpaired.
    """
    if not partner_id or partner_id == member_id:
        return member_id

    index = _index_of(members, partner_id)
    if index == -1:
        return member_id
    partner = members[index]
    if (
        partner.committee_id != committee_id
        or not partner.is_half
        or partner.pair_id != partner.id
    ):
        return member_id
    # The smaller id of a pair also carries its own id, so look for a counterpart
    already_paired = any(
        m.id not in (partner.id, member_id)
        and m.committee_id == committee_id
        and m.is_half
        and m.pair_id == partner.pair_id
        for m in members
    )
    if already_paired:
        return member_id

    pair_id = canonical_pair_id(member_id, partner_id)
    members[index] = partner.model_copy(update={"pair_id": pair_id})
    return pair_id


# =============================================================================
# LOADING
# =============================================================================

def snapshot_counts(snapshot: LedgerSnapshot) -> dict[str, int]:
    return {
        "committees": len(snapshot.committees),
        "members": len(snapshot.members),
        "payments": len(snapshot.payments),
        "draws": len(snapshot.draws),
    }


def load_snapshot(
    storage: Optional[LedgerStorageInterface],
    audit_logger: Optional[AuditLogger] = None,
) -> LedgerSnapshot:
    """
    Load the persisted snapshot.

    Missing or malformed data never fails: it falls back to four empty
    collections and logs why.
    """
    audit_logger = audit_logger or AuditLogger()
    if storage is None:
        return LedgerSnapshot.empty()

    try:
        document = storage.load()
    except StorageError as e:
        audit_logger.log_snapshot_load_failed(str(e))
        return LedgerSnapshot.empty()

    if document is None:
        return LedgerSnapshot.empty()
    if not isinstance(document, dict):
        audit_logger.log_snapshot_load_failed(
            f"Expected a JSON object, got {type(document).__name__}"
        )
        return LedgerSnapshot.empty()

    try:
        snapshot = LedgerSnapshot.from_document(document)
    except (ValidationError, ValueError) as e:
        audit_logger.log_snapshot_load_failed(str(e))
        return LedgerSnapshot.empty()

    audit_logger.log_snapshot_loaded(snapshot_counts(snapshot))
    return snapshot
