"""
Tender Invariants

Pure validation functions for tender creation and status changes.
Handlers call these before touching the store.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation

from tender_exchange.kernel.errors import InvalidTransitionError, ValidationError
from tender_exchange.kernel.time import ensure_utc
from tender_exchange.tender.models import TenderStatus, can_transition


def validate_title(title: str, min_length: int = 1) -> str:
    """
    Validate and normalize a tender title

    Returns:
        The stripped title

    Raises:
        ValidationError: If the stripped title is shorter than min_length
    """
    stripped = (title or "").strip()
    if not stripped:
        raise ValidationError("Tender title cannot be empty")
    if len(stripped) < min_length:
        raise ValidationError(
            f"Tender title must be at least {min_length} characters, got {len(stripped)}"
        )
    return stripped


def coerce_amount(value: Decimal | int | str | float, field_name: str) -> Decimal:
    """
    Convert a caller-supplied amount to Decimal

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        ValidationError: If the value is not a finite number
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return amount


def validate_amount_positive(amount: Decimal, field_name: str) -> None:
    """
    Validate that a monetary amount is strictly positive

    Raises:
        ValidationError: If amount <= 0
    """
    if amount <= 0:
        raise ValidationError(f"{field_name} must be positive, got {amount}")


def validate_budget_positive(budget: Decimal) -> None:
    validate_amount_positive(budget, "Budget")


def validate_deadline_not_past(deadline: datetime, now: datetime) -> None:
    """
    Validate that the deadline is today or later

    Compared by calendar date in UTC: a deadline earlier today is accepted
    and the tender is simply effective-Expired from its first read.

    Raises:
        ValidationError: If the deadline's date is before today's
    """
    deadline_date = ensure_utc(deadline).date()
    today = ensure_utc(now).date()
    if deadline_date < today:
        raise ValidationError(
            f"Deadline {deadline_date.isoformat()} is in the past (today is {today.isoformat()})"
        )


def validate_transition(
    tender_id: str, current: TenderStatus, target: TenderStatus
) -> None:
    """
    Check a tender status change against the transition table

    Raises:
        InvalidTransitionError: If current → target is not legal
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(tender_id, current.value, target.value)
