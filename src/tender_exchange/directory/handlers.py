"""
Company Directory Handlers

Company onboarding, member registration, capability tags and the read-only
goods/service catalog.

Fun fact: Trade directories predate the phone book by two centuries - London's
first, "A Collection of the Names of the Merchants Living in and about the
City of London", was printed in 1677.
"""

from tender_exchange.access.models import Action, Caller
from tender_exchange.access.resolver import AccessScopeResolver
from tender_exchange.directory.models import Company, GoodsService, Role, User
from tender_exchange.kernel.errors import (
    CompanyNotFoundError,
    ForbiddenError,
    NotFoundError,
    UserNotFoundError,
    ValidationError,
)
from tender_exchange.kernel.ids import generate_id
from tender_exchange.kernel.logging import LogOperation, get_logger
from tender_exchange.kernel.metrics import track_operation
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import TimeProvider
from tender_exchange.store import PersistenceStore

logger = get_logger(__name__)


class GoodsServiceCatalog:
    """
    Lookup over the goods/service reference data

    Entries are seeded administratively; the core only reads them.
    """

    def __init__(self, store: PersistenceStore) -> None:
        self.store = store

    def get(self, goods_service_id: str) -> GoodsService:
        found = self.store.get_goods_services([goods_service_id])
        if not found:
            raise NotFoundError(f"Goods/service {goods_service_id} not found")
        return found[0]

    def get_many(self, goods_service_ids: list[str]) -> list[GoodsService]:
        return self.store.get_goods_services(goods_service_ids)

    def find_by_name(self, name: str) -> GoodsService | None:
        return self.store.find_goods_service_by_name(name)

    def list_all(self) -> list[GoodsService]:
        return self.store.list_goods_services()

    def seed(
        self, name: str, category: str | None = None, description: str | None = None
    ) -> GoodsService:
        """
        Find an entry by name or create it

        Administrative seeding only; an existing entry is returned unchanged.
        """
        existing = self.find_by_name(name)
        if existing is not None:
            return existing
        entry = GoodsService(
            goods_service_id=generate_id("goods_service"),
            name=name,
            category=category,
            description=description,
        )
        return self.store.insert_goods_service(entry)


class CompanyDirectory:
    """Companies, their members and their declared capabilities"""

    def __init__(
        self,
        store: PersistenceStore,
        resolver: AccessScopeResolver,
        catalog: GoodsServiceCatalog,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.catalog = catalog
        self.time_provider = time_provider
        self.policy = policy

    # ========================================================================
    # Members
    # ========================================================================

    @track_operation("register_user")
    def register_user(
        self,
        email: str,
        credential_hash: str,
        role: Role | str,
        full_name: str | None = None,
    ) -> User:
        """
        Record a member not yet attached to any company

        The credential hash is produced by the authentication collaborator and
        stored verbatim.

        Raises:
            ValidationError: On a malformed or already registered email, or
                an unknown role
        """
        with LogOperation(logger, "register_user", email=email):
            try:
                member_role = Role(role)
            except ValueError as e:
                raise ValidationError(f"Unknown role {role!r}") from e
            try:
                user = User(
                    user_id=generate_id("user"),
                    email=email,
                    credential_hash=credential_hash,
                    full_name=full_name,
                    role=member_role,
                    created_at=self.time_provider.now(),
                )
            except ValueError as e:
                raise ValidationError(str(e)) from e
            return self.store.insert_user(user)

    def get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    # ========================================================================
    # Companies
    # ========================================================================

    @track_operation("register_company")
    def register_company(
        self,
        actor_user_id: str,
        name: str,
        industry: str | None = None,
        description: str | None = None,
        logo_url: str | None = None,
    ) -> Company:
        """
        Onboard a company and attach the registering user to it

        Raises:
            UserNotFoundError: If actor_user_id is unknown
            ForbiddenError: If the user already belongs to a company
            ValidationError: If the name length is out of bounds
            DuplicateCompanyError: If the name is taken
        """
        with LogOperation(logger, "register_company", actor_id=actor_user_id, name=name):
            user = self.get_user(actor_user_id)
            if user.company_id is not None:
                raise ForbiddenError(
                    f"User {actor_user_id} already belongs to company {user.company_id}",
                    action=Action.MANAGE_COMPANY.value,
                )

            clean_name = (name or "").strip()
            low = self.policy.min_company_name_length
            high = self.policy.max_company_name_length
            if not low <= len(clean_name) <= high:
                raise ValidationError(
                    f"Company name must be between {low} and {high} characters"
                )

            company = Company(
                company_id=generate_id("company"),
                name=clean_name,
                industry=industry,
                description=description,
                logo_url=logo_url,
                created_at=self.time_provider.now(),
            )
            if not self.store.create_company_for_user(company, actor_user_id):
                # Attached to another company between the read and the write
                raise ForbiddenError(
                    f"User {actor_user_id} already belongs to a company",
                    action=Action.MANAGE_COMPANY.value,
                )

            logger.info("Company onboarded", company_id=company.company_id)
            return company

    @track_operation("add_member")
    def add_member(self, company_id: str, user_id: str, actor: Caller) -> User:
        """
        Attach a registered, unattached user to the actor's company

        Raises:
            ForbiddenError: If actor is not an admin of company_id, or the
                user already belongs to a company
            UserNotFoundError: If user_id is unknown
        """
        with LogOperation(
            logger, "add_member", company_id=company_id, user_id=user_id, actor_id=actor.user_id
        ):
            self.resolver.authorize(actor, Action.MANAGE_COMPANY, company_id)
            self.get_company(company_id)
            user = self.get_user(user_id)
            if not self.store.assign_user_company(user_id, company_id):
                raise ForbiddenError(
                    f"User {user_id} already belongs to a company",
                    action=Action.MANAGE_COMPANY.value,
                )
            return user.model_copy(update={"company_id": company_id})

    def get_company(self, company_id: str) -> Company:
        company = self.store.get_company(company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)
        return company

    # ========================================================================
    # Capabilities
    # ========================================================================

    @track_operation("add_capabilities")
    def add_capabilities(
        self, company_id: str, service_ids: list[str], actor: Caller
    ) -> list[GoodsService]:
        """
        Tag a company with goods/services it can supply

        Idempotent: ids already tagged are skipped.

        Returns:
            The company's full tag set after the change

        Raises:
            ForbiddenError: If actor is not an admin of company_id
            CompanyNotFoundError: If the company does not exist
            ValidationError: If any id is not in the catalog
        """
        with LogOperation(
            logger, "add_capabilities", company_id=company_id, actor_id=actor.user_id
        ):
            self.resolver.authorize(actor, Action.MANAGE_COMPANY, company_id)
            self.get_company(company_id)

            requested = list(dict.fromkeys(service_ids))
            known = {entry.goods_service_id for entry in self.catalog.get_many(requested)}
            unknown = [service_id for service_id in requested if service_id not in known]
            if unknown:
                raise ValidationError(f"Unknown goods/service ids: {', '.join(unknown)}")

            added = self.store.add_company_goods_services(company_id, requested)
            logger.info("Capabilities updated", company_id=company_id, added=added)
            return self.store.list_company_goods_services(company_id)

    def capabilities(self, company_id: str) -> list[GoodsService]:
        """
        Raises:
            CompanyNotFoundError: If the company does not exist
        """
        self.get_company(company_id)
        return self.store.list_company_goods_services(company_id)
