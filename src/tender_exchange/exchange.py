"""
TenderExchange - Main façade class

The single entry point a routing layer (or the CLI) talks to. It wires the
store, the access resolver and the three managers together and hides which
module owns which operation.

Example:
    >>> from tender_exchange import TenderExchange
    >>> exchange = TenderExchange("exchange.db")
    >>> poster = exchange.register_user("ana@acme.test", "hash", "COMPANY_ADMIN")
    >>> acme = exchange.register_company(poster.user_id, "Acme Works")
    >>> caller = exchange.resolve_caller(poster.user_id)
    >>> tender = exchange.create_tender(
    ...     acme.company_id, caller, "Road resurfacing", "12km of A-road",
    ...     deadline, Decimal("1000000"),
    ... )
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, Field

from tender_exchange.access.identity import IdentityProvider, StoreIdentityProvider
from tender_exchange.access.models import Caller, TenderFilters
from tender_exchange.access.resolver import AccessScopeResolver
from tender_exchange.application.handlers import ApplicationWorkflow
from tender_exchange.application.models import Application, ApplicationStatus
from tender_exchange.directory.handlers import CompanyDirectory, GoodsServiceCatalog
from tender_exchange.directory.models import Company, GoodsService, Role, User
from tender_exchange.kernel.errors import ForbiddenError
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import RealTimeProvider, TimeProvider
from tender_exchange.store import SQLiteStore
from tender_exchange.tender.handlers import TenderLifecycleManager
from tender_exchange.tender.models import Tender


class DashboardSummary(BaseModel):
    """Activity counters for one company"""

    company_id: str
    tenders_created: int = Field(..., ge=0)
    applications_submitted: int = Field(..., ge=0)
    applications_received: int = Field(..., ge=0)
    applications_accepted: int = Field(
        ..., ge=0, description="Own applications that were accepted"
    )


class TenderExchange:
    """
    Tender Exchange main façade

    Provides a unified API for:
    - Company onboarding and capability tags
    - Tender publication, closing and expiry
    - Application submission and decisions
    - Role-scoped listings and the dashboard
    """

    def __init__(
        self,
        db_path: str | Path,
        policy: ExchangePolicy | None = None,
        time_provider: TimeProvider | None = None,
        identity_provider: IdentityProvider | None = None,
    ) -> None:
        """
        Initialize the exchange

        Args:
            db_path: Path to SQLite database
            policy: Exchange policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            identity_provider: Credential resolver (store lookup by user id if None)
        """
        self.db_path = Path(db_path)
        self.policy = policy or ExchangePolicy()
        self.time_provider = time_provider or RealTimeProvider()

        self.store = SQLiteStore(self.db_path)
        self.identity_provider = identity_provider or StoreIdentityProvider(self.store)

        self.resolver = AccessScopeResolver(self.store, self.time_provider, self.policy)
        self.catalog = GoodsServiceCatalog(self.store)
        self.directory = CompanyDirectory(
            self.store, self.resolver, self.catalog, self.time_provider, self.policy
        )
        self.tenders = TenderLifecycleManager(
            self.store, self.resolver, self.time_provider, self.policy
        )
        self.applications = ApplicationWorkflow(
            self.store, self.resolver, self.time_provider
        )

    # Identity

    def resolve_caller(self, credential: str) -> Caller:
        """Resolve a credential (a user id for the default provider) to a Caller"""
        return self.identity_provider.resolve(credential)

    # Directory operations

    def register_user(
        self,
        email: str,
        credential_hash: str,
        role: Role | str,
        full_name: str | None = None,
    ) -> User:
        return self.directory.register_user(email, credential_hash, role, full_name)

    def register_company(
        self,
        actor_user_id: str,
        name: str,
        industry: str | None = None,
        description: str | None = None,
        logo_url: str | None = None,
    ) -> Company:
        return self.directory.register_company(
            actor_user_id, name, industry, description, logo_url
        )

    def add_member(self, company_id: str, user_id: str, actor: Caller) -> User:
        return self.directory.add_member(company_id, user_id, actor)

    def get_company(self, company_id: str) -> Company:
        return self.directory.get_company(company_id)

    def register_goods_service(
        self, name: str, category: str | None = None, description: str | None = None
    ) -> GoodsService:
        """Seed a catalog entry (administrative; returns the existing entry by name)"""
        return self.catalog.seed(name, category, description)

    def list_goods_services(self) -> list[GoodsService]:
        return self.catalog.list_all()

    def add_capabilities(
        self, company_id: str, service_ids: list[str], actor: Caller
    ) -> list[GoodsService]:
        return self.directory.add_capabilities(company_id, service_ids, actor)

    def capabilities(self, company_id: str) -> list[GoodsService]:
        return self.directory.capabilities(company_id)

    # Tender operations

    def create_tender(
        self,
        company_id: str,
        actor: Caller,
        title: str,
        description: str,
        deadline: datetime,
        budget: Decimal | int | str,
        category: str | None = None,
    ) -> Tender:
        return self.tenders.create_tender(
            company_id, actor, title, description, deadline, budget, category
        )

    def close_tender(self, tender_id: str, actor: Caller) -> Tender:
        return self.tenders.close_tender(tender_id, actor)

    def get_tender(self, caller: Caller, tender_id: str) -> Tender:
        """
        Single tender, access-checked, reporting its effective status

        Raises:
            TenderNotFoundError: If the tender does not exist
            ForbiddenError: If the caller may not view it
        """
        return self.resolver.visible_tender(caller, self.tenders.get_tender(tender_id))

    def list_tenders(
        self, caller: Caller, filters: TenderFilters | None = None
    ) -> list[Tender]:
        return self.resolver.resolve_visible_tenders(caller, filters)

    def expire_overdue(self) -> list[str]:
        """Persist expiry for overdue tenders (administrative sweep)"""
        return self.tenders.expire_overdue()

    # Application operations

    def submit_application(
        self,
        tender_id: str,
        acting_company_id: str,
        quotation_amount: Decimal | int | str,
        proposal_text: str,
        actor: Caller,
    ) -> Application:
        return self.applications.submit(
            tender_id, acting_company_id, quotation_amount, proposal_text, actor
        )

    def decide_application(
        self,
        application_id: str,
        actor: Caller,
        decision: ApplicationStatus | str,
    ) -> Application:
        return self.applications.decide(application_id, actor, decision)

    def get_application(self, caller: Caller, application_id: str) -> Application:
        return self.resolver.visible_application(
            caller, self.applications.get_application(application_id)
        )

    def list_applications(
        self,
        caller: Caller,
        tender_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        return self.resolver.resolve_visible_applications(caller, tender_id, status)

    # Reporting

    def dashboard(self, caller: Caller) -> DashboardSummary:
        """
        Activity counters for the caller's company

        Raises:
            ForbiddenError: If the caller has no company yet
        """
        if caller.company_id is None:
            raise ForbiddenError(f"User {caller.user_id} has not joined a company")
        company_id = caller.company_id
        return DashboardSummary(
            company_id=company_id,
            tenders_created=self.store.count_tenders(company_id),
            applications_submitted=self.store.count_applications(company_id=company_id),
            applications_received=self.store.count_applications(
                tender_owner_id=company_id
            ),
            applications_accepted=self.store.count_applications(
                company_id=company_id, status=ApplicationStatus.ACCEPTED
            ),
        )
