"""
Tests for ApplicationWorkflow

Submission order of checks, duplicate detection by pre-check and by the
store constraint, self-bidding, and one-shot decisions.

Fun fact: Sealed-bid procurement rules usually forbid a buyer from bidding on
its own tender for the same reason card players cannot deal to themselves.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from tender_exchange.application.models import ApplicationStatus
from tender_exchange.kernel.errors import (
    ApplicationNotFoundError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidTransitionError,
    SelfBidError,
    TenderNotFoundError,
    ValidationError,
)
from tender_exchange.kernel.time import TestTimeProvider


@pytest.fixture
def tender(market):
    return market.publish()


def submit_as_b(market, tender, amount="950000", actor=None):
    return market.exchange.submit_application(
        tender.tender_id,
        market.company_b.company_id,
        amount,
        "We have the crews",
        actor or market.bidder_b,
    )


class TestSubmit:
    def test_bidder_submits_pending_application(self, market, tender) -> None:
        application = submit_as_b(market, tender)

        assert application.application_id.startswith("app_")
        assert application.status is ApplicationStatus.PENDING
        assert application.quotation_amount == Decimal("950000")
        assert application.company_id == market.company_b.company_id
        assert application.decided_at is None

    def test_admin_may_submit(self, market, tender) -> None:
        application = submit_as_b(market, tender, actor=market.admin_b)
        assert application.status is ApplicationStatus.PENDING

    def test_poster_may_not_submit(self, market, tender) -> None:
        with pytest.raises(ForbiddenError):
            submit_as_b(market, tender, actor=market.poster_b)

    def test_cannot_submit_for_another_company(self, market, tender) -> None:
        with pytest.raises(ForbiddenError):
            market.exchange.submit_application(
                tender.tender_id,
                market.company_b.company_id,
                "1",
                "",
                market.bidder_a,
            )

    @pytest.mark.parametrize("amount", ["0", "-100"])
    def test_non_positive_quotation_rejected(self, market, tender, amount: str) -> None:
        with pytest.raises(ValidationError):
            submit_as_b(market, tender, amount=amount)

    def test_unknown_tender(self, market) -> None:
        with pytest.raises(TenderNotFoundError):
            market.exchange.submit_application(
                "tdr_missing", market.company_b.company_id, "1", "", market.bidder_b
            )

    def test_self_bid_rejected_distinctly(self, market, tender) -> None:
        with pytest.raises(SelfBidError) as exc_info:
            market.exchange.submit_application(
                tender.tender_id, market.company_a.company_id, "1", "", market.bidder_a
            )

        assert exc_info.value.code == "self_bid"
        assert not isinstance(exc_info.value, ValidationError)

    def test_self_bid_checked_before_tender_status(self, market, tender) -> None:
        market.exchange.close_tender(tender.tender_id, market.poster_a)

        with pytest.raises(SelfBidError):
            market.exchange.submit_application(
                tender.tender_id, market.company_a.company_id, "1", "", market.admin_a
            )

    def test_closed_tender_rejects_submissions(self, market, tender) -> None:
        market.exchange.close_tender(tender.tender_id, market.poster_a)

        with pytest.raises(InvalidTransitionError):
            submit_as_b(market, tender)

    def test_effectively_expired_tender_rejects_submissions(
        self, market, test_time: TestTimeProvider
    ) -> None:
        tender = market.publish(deadline=test_time.now() + timedelta(minutes=5))
        test_time.advance_seconds(301)

        with pytest.raises(InvalidTransitionError):
            submit_as_b(market, tender)

    def test_second_submission_is_duplicate(self, market, tender) -> None:
        submit_as_b(market, tender)

        with pytest.raises(DuplicateApplicationError) as exc_info:
            submit_as_b(market, tender, amount="900000", actor=market.admin_b)

        assert exc_info.value.tender_id == tender.tender_id
        assert exc_info.value.company_id == market.company_b.company_id
        applications = market.exchange.list_applications(market.admin_a, tender.tender_id)
        assert len(applications) == 1

    def test_store_constraint_catches_race_past_precheck(
        self, market, tender, monkeypatch
    ) -> None:
        submit_as_b(market, tender)
        # Simulate a concurrent submission the pre-check could not see
        monkeypatch.setattr(
            market.exchange.store, "find_application", lambda tender_id, company_id: None
        )

        with pytest.raises(DuplicateApplicationError):
            submit_as_b(market, tender)

    def test_third_company_may_also_bid(self, market, tender) -> None:
        admin_c = market.exchange.register_user("admin@crane.test", "hash", "COMPANY_ADMIN")
        company_c = market.exchange.register_company(admin_c.user_id, "Crane Co")
        caller_c = market.exchange.resolve_caller(admin_c.user_id)

        submit_as_b(market, tender)
        application = market.exchange.submit_application(
            tender.tender_id, company_c.company_id, "800000", "", caller_c
        )

        assert application.company_id == company_c.company_id


class TestDecide:
    def test_owner_admin_accepts(self, market, tender) -> None:
        application = submit_as_b(market, tender)

        decided = market.exchange.decide_application(
            application.application_id, market.admin_a, "accepted"
        )

        assert decided.status is ApplicationStatus.ACCEPTED
        assert decided.decided_by == market.admin_a.user_id
        assert decided.decided_at is not None
        stored = market.exchange.applications.get_application(application.application_id)
        assert stored.status is ApplicationStatus.ACCEPTED

    def test_poster_rejects(self, market, tender) -> None:
        application = submit_as_b(market, tender)

        decided = market.exchange.decide_application(
            application.application_id, market.poster_a, ApplicationStatus.REJECTED
        )

        assert decided.status is ApplicationStatus.REJECTED

    def test_decision_is_one_shot(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        market.exchange.decide_application(application.application_id, market.admin_a, "accepted")

        for decision in ("rejected", "accepted"):
            with pytest.raises(InvalidTransitionError):
                market.exchange.decide_application(
                    application.application_id, market.admin_a, decision
                )

    def test_pending_is_not_a_decision(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        with pytest.raises(ValidationError):
            market.exchange.decide_application(
                application.application_id, market.admin_a, "pending"
            )

    def test_unknown_decision(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        with pytest.raises(ValidationError):
            market.exchange.decide_application(
                application.application_id, market.admin_a, "maybe"
            )

    def test_bidding_company_cannot_decide(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        with pytest.raises(ForbiddenError):
            market.exchange.decide_application(
                application.application_id, market.admin_b, "accepted"
            )

    def test_owning_bidder_cannot_decide(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        with pytest.raises(ForbiddenError):
            market.exchange.decide_application(
                application.application_id, market.bidder_a, "accepted"
            )

    @pytest.mark.parametrize("decision", ["pending", "maybe"])
    def test_outsider_is_refused_before_decision_is_parsed(
        self, market, tender, decision
    ) -> None:
        application = submit_as_b(market, tender)
        with pytest.raises(ForbiddenError):
            market.exchange.decide_application(
                application.application_id, market.bidder_b, decision
            )

    def test_unknown_application(self, market) -> None:
        with pytest.raises(ApplicationNotFoundError):
            market.exchange.decide_application("app_missing", market.admin_a, "accepted")

    def test_accepting_one_leaves_others_pending(self, market, tender) -> None:
        admin_c = market.exchange.register_user("admin@crane.test", "hash", "COMPANY_ADMIN")
        company_c = market.exchange.register_company(admin_c.user_id, "Crane Co")
        caller_c = market.exchange.resolve_caller(admin_c.user_id)
        first = submit_as_b(market, tender)
        second = market.exchange.submit_application(
            tender.tender_id, company_c.company_id, "800000", "", caller_c
        )

        market.exchange.decide_application(first.application_id, market.admin_a, "accepted")

        stored = market.exchange.applications.get_application(second.application_id)
        assert stored.status is ApplicationStatus.PENDING

        # Several winners per tender are allowed
        again = market.exchange.decide_application(
            second.application_id, market.admin_a, "accepted"
        )
        assert again.status is ApplicationStatus.ACCEPTED

    def test_decide_after_tender_closed(self, market, tender) -> None:
        application = submit_as_b(market, tender)
        market.exchange.close_tender(tender.tender_id, market.poster_a)

        decided = market.exchange.decide_application(
            application.application_id, market.admin_a, "rejected"
        )
        assert decided.status is ApplicationStatus.REJECTED

    def test_already_decided_reports_invalid_transition(
        self, market, tender, test_time
    ) -> None:
        application = submit_as_b(market, tender)
        market.exchange.store.update_application_status_if(
            application.application_id,
            ApplicationStatus.PENDING,
            ApplicationStatus.REJECTED,
            market.poster_a.user_id,
            test_time.now(),
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            market.exchange.decide_application(
                application.application_id, market.admin_a, "accepted"
            )
        assert exc_info.value.current_status == "rejected"

    def test_concurrent_decision_after_read_wins(
        self, market, tender, test_time, monkeypatch
    ) -> None:
        """A rival decision landing between the read and the conditional write"""
        application = submit_as_b(market, tender)
        store = market.exchange.store
        original_get = store.get_application
        reads = []

        def stale_then_rival_write(application_id):
            record = original_get(application_id)
            if not reads:
                store.update_application_status_if(
                    application_id,
                    ApplicationStatus.PENDING,
                    ApplicationStatus.REJECTED,
                    market.poster_a.user_id,
                    test_time.now(),
                )
            reads.append(record.status)
            return record

        monkeypatch.setattr(store, "get_application", stale_then_rival_write)

        with pytest.raises(InvalidTransitionError) as exc_info:
            market.exchange.decide_application(
                application.application_id, market.admin_a, "accepted"
            )

        assert reads[0] is ApplicationStatus.PENDING
        assert exc_info.value.current_status == "rejected"
        assert exc_info.value.requested_status == "accepted"
        stored = original_get(application.application_id)
        assert stored.status is ApplicationStatus.REJECTED
        assert stored.decided_by == market.poster_a.user_id
