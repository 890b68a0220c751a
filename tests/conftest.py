"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pytest

from tender_exchange.access.models import Caller
from tender_exchange.access.resolver import AccessScopeResolver
from tender_exchange.directory.models import Company, Role
from tender_exchange.exchange import TenderExchange
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import TestTimeProvider
from tender_exchange.store import SQLiteStore
from tender_exchange.tender.models import Tender


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir) / "exchange.db"


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC, a Wednesday well before the
    scenario deadlines at the end of 2025.
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> ExchangePolicy:
    """Provide default exchange policy for tests"""
    return ExchangePolicy()


@pytest.fixture
def store(temp_db: Path) -> SQLiteStore:
    """Provide a fresh store for each test"""
    return SQLiteStore(temp_db)


@pytest.fixture
def resolver(
    store: SQLiteStore, test_time: TestTimeProvider, policy: ExchangePolicy
) -> AccessScopeResolver:
    return AccessScopeResolver(store, test_time, policy)


@pytest.fixture
def exchange(
    temp_db: Path, test_time: TestTimeProvider, policy: ExchangePolicy
) -> TenderExchange:
    """Provide a façade over a fresh database with frozen time"""
    return TenderExchange(temp_db, policy=policy, time_provider=test_time)


# =============================================================================
# Seeded marketplace: two companies, three members each
# =============================================================================


@dataclass
class Marketplace:
    """Company A publishes, Company B bids; each has one member per role"""

    exchange: TenderExchange
    company_a: Company
    company_b: Company
    admin_a: Caller
    poster_a: Caller
    bidder_a: Caller
    admin_b: Caller
    poster_b: Caller
    bidder_b: Caller

    def publish(
        self,
        title: str = "Road resurfacing",
        budget: Decimal | str = Decimal("1000000"),
        deadline: datetime | None = None,
        actor: Caller | None = None,
        description: str = "Resurface 12km of the A-road",
        category: str | None = None,
    ) -> Tender:
        """Create a tender owned by Company A"""
        actor = actor or self.poster_a
        return self.exchange.create_tender(
            actor.company_id,
            actor,
            title,
            description,
            deadline or datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc),
            budget,
            category,
        )


def _onboard(exchange: TenderExchange, name: str, slug: str) -> tuple[Company, dict[Role, Caller]]:
    admin = exchange.register_user(f"admin@{slug}.test", "hash", Role.COMPANY_ADMIN)
    company = exchange.register_company(admin.user_id, name, industry="Construction")
    admin_caller = exchange.resolve_caller(admin.user_id)

    callers = {Role.COMPANY_ADMIN: admin_caller}
    for role in (Role.TENDER_POSTER, Role.BIDDER):
        member = exchange.register_user(f"{role.value.lower()}@{slug}.test", "hash", role)
        exchange.add_member(company.company_id, member.user_id, admin_caller)
        callers[role] = exchange.resolve_caller(member.user_id)
    return company, callers


@pytest.fixture
def market(exchange: TenderExchange) -> Marketplace:
    """Provide two onboarded companies with an admin, poster and bidder each"""
    company_a, a = _onboard(exchange, "Acme Works", "acme")
    company_b, b = _onboard(exchange, "Bolt Builders", "bolt")
    return Marketplace(
        exchange=exchange,
        company_a=company_a,
        company_b=company_b,
        admin_a=a[Role.COMPANY_ADMIN],
        poster_a=a[Role.TENDER_POSTER],
        bidder_a=a[Role.BIDDER],
        admin_b=b[Role.COMPANY_ADMIN],
        poster_b=b[Role.TENDER_POSTER],
        bidder_b=b[Role.BIDDER],
    )


@pytest.fixture
def yesterday(test_time: TestTimeProvider) -> datetime:
    return test_time.now() - timedelta(days=1)
