"""
Tests for Kameeti models

Test strategy:
1. Unit tests for individual components (models, calculations, history)
2. Engine tests for mutation rules and invariants
3. No real filesystem beyond pytest's tmp_path
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from kameeti.models.committee import (
    Committee,
    CommitteeInput,
    Draw,
    LedgerSnapshot,
    Member,
    MemberInput,
    Payment,
    PaymentGrid,
    PaymentInput,
    ShareType,
)
from kameeti.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def _committee(**overrides) -> Committee:
    fields = dict(
        id="c1",
        name="Office Kameeti",
        monthly_amount=Decimal("1000"),
        start_date=date(2024, 1, 1),
    )
    fields.update(overrides)
    return Committee(**fields)


class TestLedgerModels:
    """Tests for ledger entity models."""

    def test_committee_creation(self):
        """Test Committee model creation with defaults."""
        committee = _committee()
        assert committee.duration_months == 0
        assert committee.allow_half_share is False
        assert committee.total_payout == Decimal("0")

    def test_committee_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        committee = _committee(name="  Office Kameeti  ")
        assert committee.name == "Office Kameeti"

    def test_committee_rejects_non_positive_amount(self):
        """Test that zero or negative monthly amounts are rejected."""
        with pytest.raises(ValueError):
            _committee(monthly_amount=Decimal("0"))
        with pytest.raises(ValueError):
            _committee(monthly_amount=Decimal("-5"))

    def test_committee_is_frozen(self):
        """Test that entities cannot be changed in place."""
        committee = _committee()
        with pytest.raises(ValidationError):
            committee.name = "Other"

    def test_committee_accepts_camel_case(self):
        """Test that the persisted camelCase layout is accepted."""
        committee = Committee.model_validate({
            "id": "c1",
            "name": "Family",
            "monthlyAmount": 500,
            "startDate": "2024-03-01",
            "durationMonths": 4,
            "allowHalfShare": True,
        })
        assert committee.monthly_amount == Decimal("500")
        assert committee.start_date == date(2024, 3, 1)
        assert committee.total_payout == Decimal("2000")

    def test_half_member_requires_pair_id(self):
        """Test that a HALF member without a pair id is rejected."""
        with pytest.raises(ValueError, match="pair id"):
            Member(
                id="m1",
                committee_id="c1",
                name="Ali",
                phone="0300",
                share_type=ShareType.HALF,
            )

    def test_blank_pair_id_becomes_none(self):
        """Test that an empty pair id on a FULL member is normalised away."""
        member = Member(id="m1", committee_id="c1", name="Ali", phone="0300", pair_id="")
        assert member.pair_id is None
        assert member.share_type == ShareType.FULL
        assert member.is_half is False

    def test_half_member_is_half(self):
        """Test the is_half shortcut."""
        member = Member(
            id="m1",
            committee_id="c1",
            name="Ali",
            phone="0300",
            share_type=ShareType.HALF,
            pair_id="m1",
        )
        assert member.is_half is True

    def test_payment_month_year_pattern(self):
        """Test that month tokens must be YYYY-MM."""
        with pytest.raises(ValueError):
            Payment(
                id="p1",
                committee_id="c1",
                member_id_or_pair_id="m1",
                month_year="2024-13",
                amount=Decimal("1000"),
                date_paid=date(2024, 1, 5),
            )

    def test_payment_natural_key(self):
        """Test the (committee, payer, month) key."""
        payment = Payment(
            id="p1",
            committee_id="c1",
            member_id_or_pair_id="m1",
            month_year="2024-01",
            amount=Decimal("1000"),
            date_paid=date(2024, 1, 5),
        )
        assert payment.natural_key == ("c1", "m1", "2024-01")

    def test_draw_rejects_zero_amount(self):
        """Test that a draw must pay out something."""
        with pytest.raises(ValueError):
            Draw(
                id="d1",
                committee_id="c1",
                month_year="2024-01",
                winner_id_or_pair_id="m1",
                payout_date=date(2024, 1, 20),
                amount=Decimal("0"),
            )


class TestInputModels:
    """Tests for caller-supplied input models."""

    def test_committee_input_requires_name(self):
        """Test that an empty committee name is rejected."""
        with pytest.raises(ValueError):
            CommitteeInput(name="", monthly_amount=100, start_date=date(2024, 1, 1))

    def test_member_input_blank_partner(self):
        """Test that a blank partner id means no partner."""
        data = MemberInput(name="Sara", phone="0311", share_type="HALF", partner_id="  ")
        assert data.partner_id is None
        assert data.share_type == ShareType.HALF

    def test_member_input_requires_phone(self):
        """Test that phone is required."""
        with pytest.raises(ValueError):
            MemberInput(name="Sara", phone="")

    def test_payment_input_parses_iso_date(self):
        """Test that ISO date strings are accepted."""
        data = PaymentInput(member_id_or_pair_id="m1", month_year="2024-02", date_paid="2024-02-11")
        assert data.date_paid == date(2024, 2, 11)
        assert data.amount is None


class TestSnapshot:
    """Tests for the snapshot container."""

    def test_empty_snapshot(self):
        """Test that an empty snapshot has four empty collections."""
        snapshot = LedgerSnapshot.empty()
        assert snapshot.to_document() == {
            "committees": [],
            "members": [],
            "payments": [],
            "draws": [],
        }

    def test_document_uses_camel_case(self):
        """Test that serialized entities use the persisted key names."""
        snapshot = LedgerSnapshot(committees=(_committee(duration_months=2),))
        doc = snapshot.to_document()
        row = doc["committees"][0]
        assert row["monthlyAmount"] == "1000"
        assert row["startDate"] == "2024-01-01"
        assert row["durationMonths"] == 2
        assert row["allowHalfShare"] is False

    def test_from_document_round_trip(self):
        """Test that a serialized snapshot loads back equal."""
        snapshot = LedgerSnapshot(
            committees=(_committee(allow_half_share=True, duration_months=1),),
            members=(
                Member(id="a", committee_id="c1", name="A", phone="1",
                       share_type=ShareType.HALF, pair_id="a"),
                Member(id="b", committee_id="c1", name="B", phone="2",
                       share_type=ShareType.HALF, pair_id="a"),
            ),
        )
        assert LedgerSnapshot.from_document(snapshot.to_document()) == snapshot

    def test_from_document_requires_all_collections(self):
        """Test that a document missing a collection is refused."""
        with pytest.raises(ValueError, match="draws"):
            LedgerSnapshot.from_document({"committees": [], "members": [], "payments": []})

    def test_replace_returns_new_snapshot(self):
        """Test that replace leaves the original untouched."""
        snapshot = LedgerSnapshot.empty()
        updated = snapshot.replace(committees=[_committee()])
        assert snapshot.committees == ()
        assert len(updated.committees) == 1


class TestPaymentGridModel:
    """Tests for the grid projection model."""

    def test_payment_lookup(self):
        """Test cell lookup by payer and month."""
        payment = Payment(
            id="p1",
            committee_id="c1",
            member_id_or_pair_id="m1",
            month_year="2024-01",
            amount=Decimal("1000"),
            date_paid=date(2024, 1, 5),
        )
        grid = PaymentGrid(
            committee_id="c1",
            months=("2024-01", "2024-02"),
            cells={PaymentGrid.cell_key("m1", "2024-01"): payment},
        )
        assert grid.payment_for("m1", "2024-01") == payment
        assert grid.is_paid("m1", "2024-02") is False

    def test_ids_with_separators_do_not_collide(self):
        """Test that payer ids containing '|' stay distinct cells."""
        payment = Payment(
            id="p1",
            committee_id="c1",
            member_id_or_pair_id="a|2024-01",
            month_year="2024-02",
            amount=Decimal("1000"),
            date_paid=date(2024, 2, 5),
        )
        grid = PaymentGrid(
            committee_id="c1",
            months=("2024-01", "2024-02"),
            cells={PaymentGrid.cell_key("a|2024-01", "2024-02"): payment},
        )
        assert grid.is_paid("a|2024-01", "2024-02") is True
        assert grid.is_paid("a", "2024-01|2024-02") is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.COMMITTEE_CREATED,
            description="Committee created",
        )
        assert event.event_type == AuditEventType.COMMITTEE_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id="p1",
            description="Payment recorded",
            details={"late_days": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "payment_recorded"
        assert log_dict["entity_id"] == "p1"
        assert log_dict["details"]["late_days"] == 3

    def test_builder_entity_events(self):
        """Test that builder maps entity types to event types."""
        assert AuditEventBuilder.entity_created("member", "m1").event_type == AuditEventType.MEMBER_ADDED
        assert AuditEventBuilder.entity_updated("draw", "d1").event_type == AuditEventType.DRAW_UPDATED
        assert AuditEventBuilder.entity_deleted("payment", "p1").event_type == AuditEventType.PAYMENT_DELETED

    def test_builder_mutation_rejected(self):
        """Test AuditEventBuilder.mutation_rejected."""
        correlation_id = uuid4()
        event = AuditEventBuilder.mutation_rejected(
            operation="delete_member",
            reason="duration_below_draws",
            message="Cannot delete member",
            entity_id="m1",
            correlation_id=correlation_id,
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "duration_below_draws"
        assert event.details["operation"] == "delete_member"
        assert event.correlation_id == correlation_id

    def test_builder_persistence_failed(self):
        """Test that persistence failures are errors."""
        event = AuditEventBuilder.persistence_failed("disk full")
        assert event.event_type == AuditEventType.PERSISTENCE_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
