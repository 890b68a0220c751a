"""
End-to-end tests through the TenderExchange façade

The three reference scenarios, the cross-cutting properties, the dashboard
and the access-checked single-record reads.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tender_exchange import DashboardSummary, TenderExchange, __version__
from tender_exchange.access.models import Caller
from tender_exchange.application.models import ApplicationStatus
from tender_exchange.directory.models import Role
from tender_exchange.kernel.errors import (
    ApplicationNotFoundError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidTransitionError,
    SelfBidError,
    TenderNotFoundError,
)
from tender_exchange.kernel.time import TestTimeProvider
from tender_exchange.tender.models import TenderStatus, effective_status


def test_version() -> None:
    assert __version__ == "0.1.0"


class TestScenarios:
    def test_bid_then_duplicate_then_one_shot_decision(self, market) -> None:
        """Company B bids once, is refused a second time, and is decided once"""
        exchange = market.exchange
        tender = market.publish(
            budget=Decimal("1000000"),
            deadline=datetime(2025, 12, 31, tzinfo=timezone.utc),
        )

        application = exchange.submit_application(
            tender.tender_id, market.company_b.company_id, Decimal("950000"), "", market.bidder_b
        )
        assert application.status is ApplicationStatus.PENDING

        with pytest.raises(DuplicateApplicationError):
            exchange.submit_application(
                tender.tender_id,
                market.company_b.company_id,
                Decimal("950000"),
                "",
                market.bidder_b,
            )

        accepted = exchange.decide_application(
            application.application_id, market.admin_a, ApplicationStatus.ACCEPTED
        )
        assert accepted.status is ApplicationStatus.ACCEPTED

        with pytest.raises(InvalidTransitionError):
            exchange.decide_application(
                application.application_id, market.admin_a, ApplicationStatus.REJECTED
            )

    def test_overdue_tender_hidden_from_bidders(
        self, market, test_time: TestTimeProvider
    ) -> None:
        """Deadline passed yesterday while the stored status is still Active"""
        tender = market.publish(deadline=test_time.now() + timedelta(hours=1))
        test_time.advance_days(2)

        stored = market.exchange.tenders.get_tender(tender.tender_id)
        assert stored.status is TenderStatus.ACTIVE
        assert effective_status(stored, test_time.now()) is TenderStatus.EXPIRED
        assert market.exchange.list_tenders(market.bidder_b) == []
        with pytest.raises(ForbiddenError):
            market.exchange.get_tender(market.bidder_b, tender.tender_id)

    def test_company_cannot_bid_on_own_tender(self, market) -> None:
        tender = market.publish()

        with pytest.raises(SelfBidError):
            market.exchange.submit_application(
                tender.tender_id, market.company_a.company_id, "1", "", market.admin_a
            )


class TestProperties:
    def test_bidders_never_see_inactive_tenders(
        self, market, test_time: TestTimeProvider
    ) -> None:
        exchange = market.exchange
        for hours in (1, 5, 48, 24 * 30):
            market.publish(
                title=f"A {hours}h", deadline=test_time.now() + timedelta(hours=hours)
            )
            market.publish(
                title=f"B {hours}h",
                deadline=test_time.now() + timedelta(hours=hours),
                actor=market.poster_b,
            )
        closed = market.publish(title="Closed")
        exchange.close_tender(closed.tender_id, market.poster_a)

        for days in (0, 1, 3, 60):
            test_time.advance_days(days)
            for bidder in (market.bidder_a, market.bidder_b):
                for tender in exchange.list_tenders(bidder):
                    assert tender.status is TenderStatus.ACTIVE
                    assert tender.deadline >= test_time.now()

    def test_at_most_one_application_per_company_and_tender(self, market) -> None:
        tender = market.publish()
        exchange = market.exchange
        exchange.submit_application(
            tender.tender_id, market.company_b.company_id, "10", "", market.bidder_b
        )

        for actor in (market.bidder_b, market.admin_b):
            with pytest.raises(DuplicateApplicationError):
                exchange.submit_application(
                    tender.tender_id, market.company_b.company_id, "9", "", actor
                )

        received = exchange.list_applications(market.poster_a, tender.tender_id)
        assert len(received) == 1

    @pytest.mark.parametrize("first", [ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED])
    def test_decided_applications_are_final(self, market, first: ApplicationStatus) -> None:
        tender = market.publish()
        application = market.exchange.submit_application(
            tender.tender_id, market.company_b.company_id, "10", "", market.bidder_b
        )
        market.exchange.decide_application(application.application_id, market.admin_a, first)

        for decision in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
            with pytest.raises(InvalidTransitionError):
                market.exchange.decide_application(
                    application.application_id, market.poster_a, decision
                )

    def test_poster_cannot_close_foreign_tender(self, market) -> None:
        tender = market.publish()
        with pytest.raises(ForbiddenError):
            market.exchange.close_tender(tender.tender_id, market.poster_b)


class TestSingleRecordReads:
    def test_owner_reads_effective_status(self, market, test_time: TestTimeProvider) -> None:
        tender = market.publish(deadline=test_time.now() + timedelta(hours=1))
        test_time.advance_days(1)

        seen = market.exchange.get_tender(market.poster_a, tender.tender_id)

        assert seen.status is TenderStatus.EXPIRED

    def test_unknown_records(self, market) -> None:
        with pytest.raises(TenderNotFoundError):
            market.exchange.get_tender(market.poster_a, "tdr_missing")
        with pytest.raises(ApplicationNotFoundError):
            market.exchange.get_application(market.admin_a, "app_missing")

    def test_resolve_unknown_identity(self, exchange: TenderExchange) -> None:
        with pytest.raises(ForbiddenError):
            exchange.resolve_caller("usr_nobody")


class TestDashboard:
    def test_counts_for_both_sides(self, market) -> None:
        exchange = market.exchange
        first = market.publish(title="First")
        market.publish(title="Second")
        theirs = market.publish(title="Theirs", actor=market.poster_b)

        bid_b = exchange.submit_application(
            first.tender_id, market.company_b.company_id, "10", "", market.bidder_b
        )
        exchange.submit_application(
            theirs.tender_id, market.company_a.company_id, "20", "", market.bidder_a
        )
        exchange.decide_application(bid_b.application_id, market.admin_a, "accepted")

        summary_a = exchange.dashboard(market.poster_a)
        assert summary_a == DashboardSummary(
            company_id=market.company_a.company_id,
            tenders_created=2,
            applications_submitted=1,
            applications_received=1,
            applications_accepted=0,
        )

        summary_b = exchange.dashboard(market.bidder_b)
        assert summary_b.tenders_created == 1
        assert summary_b.applications_submitted == 1
        assert summary_b.applications_received == 1
        assert summary_b.applications_accepted == 1

    def test_caller_without_company(self, exchange: TenderExchange) -> None:
        user = exchange.register_user("solo@x.test", "hash", Role.BIDDER)
        with pytest.raises(ForbiddenError):
            exchange.dashboard(exchange.resolve_caller(user.user_id))


class TestCompanylessCallers:
    def test_bidder_without_company_can_browse(self, market) -> None:
        tender = market.publish()
        solo = Caller(user_id="usr_solo", role=Role.BIDDER)

        assert [t.tender_id for t in market.exchange.list_tenders(solo)] == [tender.tender_id]
        assert market.exchange.list_applications(solo) == []

    def test_poster_without_company_sees_nothing(self, market) -> None:
        market.publish()
        solo = Caller(user_id="usr_solo", role=Role.TENDER_POSTER)

        assert market.exchange.list_tenders(solo) == []
