"""
Tests for tender models, the transition table and tender invariants

Effective status is the rule every read path depends on, so it gets the
boundary cases: exactly at the deadline, one second past, and terminal
states that must never be re-derived.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tender_exchange.kernel.errors import InvalidTransitionError, ValidationError
from tender_exchange.tender import invariants
from tender_exchange.tender.models import (
    TENDER_TRANSITIONS,
    Tender,
    TenderStatus,
    can_transition,
    effective_status,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_tender(**overrides) -> Tender:
    fields = {
        "tender_id": "tdr_1",
        "title": "Bridge inspection",
        "description": "Annual inspection of three bridges",
        "deadline": NOW + timedelta(days=10),
        "budget": Decimal("50000"),
        "company_id": "cmp_a",
        "created_by": "usr_a",
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Tender(**fields)


class TestEffectiveStatus:
    def test_active_before_deadline(self) -> None:
        assert effective_status(make_tender(), NOW) is TenderStatus.ACTIVE

    def test_active_exactly_at_deadline(self) -> None:
        tender = make_tender(deadline=NOW)
        assert effective_status(tender, NOW) is TenderStatus.ACTIVE

    def test_expired_one_second_past_deadline(self) -> None:
        tender = make_tender(deadline=NOW)
        assert effective_status(tender, NOW + timedelta(seconds=1)) is TenderStatus.EXPIRED

    def test_closed_stays_closed_past_deadline(self) -> None:
        tender = make_tender(deadline=NOW, status=TenderStatus.APPLICATION_CLOSED)
        later = NOW + timedelta(days=30)
        assert effective_status(tender, later) is TenderStatus.APPLICATION_CLOSED

    def test_stored_expired_reported_as_is(self) -> None:
        tender = make_tender(status=TenderStatus.EXPIRED)
        assert effective_status(tender, NOW) is TenderStatus.EXPIRED

    def test_naive_now_treated_as_utc(self) -> None:
        tender = make_tender(deadline=NOW)
        naive_later = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert effective_status(tender, naive_later) is TenderStatus.EXPIRED

    def test_with_effective_status_copies(self) -> None:
        tender = make_tender(deadline=NOW)
        copy = tender.with_effective_status(NOW + timedelta(days=1))

        assert copy.status is TenderStatus.EXPIRED
        assert tender.status is TenderStatus.ACTIVE


class TestTransitionTable:
    @pytest.mark.parametrize(
        "target", [TenderStatus.EXPIRED, TenderStatus.APPLICATION_CLOSED]
    )
    def test_active_moves_forward(self, target: TenderStatus) -> None:
        assert can_transition(TenderStatus.ACTIVE, target)

    @pytest.mark.parametrize(
        "terminal", [TenderStatus.EXPIRED, TenderStatus.APPLICATION_CLOSED]
    )
    def test_terminal_states_have_no_exits(self, terminal: TenderStatus) -> None:
        assert TENDER_TRANSITIONS[terminal] == frozenset()
        for target in TenderStatus:
            assert not can_transition(terminal, target)

    def test_no_backward_transition_to_active(self) -> None:
        assert not any(
            can_transition(status, TenderStatus.ACTIVE) for status in TenderStatus
        )

    def test_validate_transition_raises_with_details(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            invariants.validate_transition(
                "tdr_1", TenderStatus.EXPIRED, TenderStatus.APPLICATION_CLOSED
            )

        assert exc_info.value.current_status == "Expired"
        assert exc_info.value.requested_status == "ApplicationClosed"
        assert exc_info.value.code == "invalid_transition"


class TestTenderModel:
    def test_title_is_stripped(self) -> None:
        assert make_tender(title="  Bridge inspection  ").title == "Bridge inspection"

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValueError):
            make_tender(title="   ")

    def test_non_positive_budget_rejected(self) -> None:
        with pytest.raises(ValueError):
            make_tender(budget=Decimal("0"))

    def test_naive_deadline_normalized_to_utc(self) -> None:
        tender = make_tender(deadline=datetime(2025, 2, 1, 9, 0))
        assert tender.deadline.tzinfo == timezone.utc


class TestTenderInvariants:
    def test_validate_title_enforces_minimum_length(self) -> None:
        with pytest.raises(ValidationError):
            invariants.validate_title("ab", min_length=3)
        assert invariants.validate_title(" abc ", min_length=3) == "abc"

    def test_validate_title_rejects_empty(self) -> None:
        with pytest.raises(ValidationError, match="empty"):
            invariants.validate_title("")

    @pytest.mark.parametrize("budget", [Decimal("0"), Decimal("-1"), Decimal("-0.01")])
    def test_budget_must_be_positive(self, budget: Decimal) -> None:
        with pytest.raises(ValidationError):
            invariants.validate_budget_positive(budget)

    def test_coerce_amount_from_string_and_float(self) -> None:
        assert invariants.coerce_amount("950000", "Budget") == Decimal("950000")
        assert invariants.coerce_amount(0.1, "Budget") == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_coerce_amount_rejects_non_numbers(self, value: str) -> None:
        with pytest.raises(ValidationError):
            invariants.coerce_amount(value, "Budget")

    def test_deadline_today_is_accepted(self) -> None:
        earlier_today = NOW.replace(hour=8)
        invariants.validate_deadline_not_past(earlier_today, NOW)

    def test_deadline_yesterday_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="in the past"):
            invariants.validate_deadline_not_past(NOW - timedelta(days=1), NOW)
