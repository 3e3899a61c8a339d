"""
Ledger Rejections

A rejected mutation raises one of these. The snapshot and the undo
history are untouched whenever one escapes the engine.
"""

from enum import Enum
from typing import Optional

from pydantic import ValidationError


class RejectionReason(str, Enum):
    """Machine-readable cause of a rejection."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    HALF_SHARE_NOT_ALLOWED = "half_share_not_allowed"
    DURATION_BELOW_DRAWS = "duration_below_draws"
    DUPLICATE_PAYMENT = "duplicate_payment"


class LedgerRejectedError(Exception):
    """Base class for every rejected ledger mutation."""

    reason: RejectionReason = RejectionReason.VALIDATION

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id


class LedgerValidationError(LedgerRejectedError):
    """Required fields missing or malformed."""

    reason = RejectionReason.VALIDATION

    def __init__(
        self,
        message: str,
        errors: Optional[list[dict]] = None,
        entity_id: Optional[str] = None,
    ):
        super().__init__(message, entity_id=entity_id)
        self.errors = errors or []

    @classmethod
    def from_pydantic(
        cls,
        exc: ValidationError,
        entity_id: Optional[str] = None,
    ) -> 'LedgerValidationError':
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        return cls(
            f"Invalid or missing fields: {', '.join(fields) or 'input'}",
            errors=exc.errors(include_url=False),
            entity_id=entity_id,
        )


class EntityNotFoundError(LedgerRejectedError):
    """Referenced committee, member, payment or draw does not exist."""

    reason = RejectionReason.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}", entity_id)
        self.entity_type = entity_type


class HalfShareNotAllowedError(LedgerRejectedError):
    """Half-share disabled while HALF members exist, or HALF member where disabled."""

    reason = RejectionReason.HALF_SHARE_NOT_ALLOWED


class DurationBelowDrawsError(LedgerRejectedError):
    """Change would leave fewer payout slots than draws already recorded."""

    reason = RejectionReason.DURATION_BELOW_DRAWS

    def __init__(self, entity_id: str, new_duration: int, draws_recorded: int):
        super().__init__(
            "Committee duration would drop to "
            f"{new_duration} months but {draws_recorded} draws are already recorded",
            entity_id,
        )
        self.new_duration = new_duration
        self.draws_recorded = draws_recorded


class DuplicatePaymentError(LedgerRejectedError):
    """A payment already exists for this payer and month."""

    reason = RejectionReason.DUPLICATE_PAYMENT

    def __init__(self, payer_id: str, month_year: str, existing_payment_id: str):
        super().__init__(
            f"Payment already recorded for {payer_id} in {month_year}",
            existing_payment_id,
        )
        self.payer_id = payer_id
        self.month_year = month_year
