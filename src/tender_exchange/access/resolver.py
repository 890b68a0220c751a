"""
Access Scope Resolver

Decides, per caller, which tenders and applications are visible and whether a
single mutation is allowed. ``authorize`` is the one gate every mutation path
goes through; the listing methods apply the same role predicates to whole
record sets.

Role handling is exhaustive over the closed Role enum: adding a role without
teaching this module about it fails loudly instead of falling through.
"""

from datetime import datetime

from typing_extensions import assert_never

from tender_exchange.access.models import Action, Caller, TenderFilters, TenderSort
from tender_exchange.application.models import Application, ApplicationStatus
from tender_exchange.directory.models import GoodsService, Role
from tender_exchange.kernel.errors import ForbiddenError, TenderNotFoundError
from tender_exchange.kernel.logging import get_logger
from tender_exchange.kernel.metrics import access_denied_total
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import TimeProvider
from tender_exchange.store import PersistenceStore
from tender_exchange.tender.models import Tender, TenderStatus, effective_status

logger = get_logger(__name__)

Resource = str | Tender | Application


# ============================================================================
# Role capabilities
# ============================================================================


def may_manage_tenders(role: Role) -> bool:
    """Create, close and decide on behalf of the own company"""
    if role is Role.BIDDER:
        return False
    elif role is Role.TENDER_POSTER:
        return True
    elif role is Role.COMPANY_ADMIN:
        return True
    else:
        assert_never(role)


def may_bid(role: Role) -> bool:
    """Submit applications on behalf of the own company"""
    if role is Role.BIDDER:
        return True
    elif role is Role.TENDER_POSTER:
        return False
    elif role is Role.COMPANY_ADMIN:
        return True
    else:
        assert_never(role)


def may_manage_company(role: Role) -> bool:
    """Change the own company's profile and capability tags"""
    if role is Role.BIDDER:
        return False
    elif role is Role.TENDER_POSTER:
        return False
    elif role is Role.COMPANY_ADMIN:
        return True
    else:
        assert_never(role)


def capability_overlap(tender: Tender, services: list[GoodsService]) -> int:
    """
    Soft ranking signal between a tender and declared capabilities

    Tenders carry no required-capability field, so this counts services whose
    category equals the tender's category, or whose name appears in the
    tender's title or description. Never used to hide a tender.
    """
    text = f"{tender.title} {tender.description}".lower()
    tender_category = (tender.category or "").strip().lower()
    score = 0
    for service in services:
        service_category = (service.category or "").strip().lower()
        if tender_category and service_category == tender_category:
            score += 1
        elif service.name.lower() in text:
            score += 1
    return score


class AccessScopeResolver:
    """
    Role-scoped visibility and authorization

    Stateless between calls: every decision reads the store and the clock
    afresh.
    """

    def __init__(
        self,
        store: PersistenceStore,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
    ) -> None:
        self.store = store
        self.time_provider = time_provider
        self.policy = policy

    # ========================================================================
    # Authorization gate
    # ========================================================================

    def authorize(self, caller: Caller, action: Action, resource: Resource) -> None:
        """
        Allow or refuse one action on one resource

        Resources by action:
        - CREATE_TENDER, SUBMIT_APPLICATION, MANAGE_COMPANY: company id
        - CLOSE_TENDER, VIEW_TENDER: Tender
        - VIEW_APPLICATION, DECIDE_APPLICATION: Application

        Raises:
            ForbiddenError: If the caller lacks the role or ownership
            TypeError: If the resource type does not fit the action
        """
        if not self._is_allowed(caller, action, resource):
            access_denied_total.labels(action=action.value).inc()
            logger.info(
                "Access denied",
                action=action.value,
                user_id=caller.user_id,
                role=caller.role.value,
            )
            raise ForbiddenError(
                f"{caller.role.value} {caller.user_id} may not {action.value.replace('_', ' ')}",
                action=action.value,
            )

    def _is_allowed(self, caller: Caller, action: Action, resource: Resource) -> bool:
        if action in (Action.CREATE_TENDER, Action.SUBMIT_APPLICATION, Action.MANAGE_COMPANY):
            company_id = _expect(resource, str, action)
            own = caller.company_id is not None and caller.company_id == company_id
            if action is Action.CREATE_TENDER:
                return own and may_manage_tenders(caller.role)
            if action is Action.SUBMIT_APPLICATION:
                return own and may_bid(caller.role)
            return own and may_manage_company(caller.role)

        if action in (Action.CLOSE_TENDER, Action.VIEW_TENDER):
            tender = _expect(resource, Tender, action)
            if action is Action.CLOSE_TENDER:
                return self._owns(caller, tender.company_id) and may_manage_tenders(
                    caller.role
                )
            return self._can_view_tender(caller, tender, self.time_provider.now())

        if action in (Action.VIEW_APPLICATION, Action.DECIDE_APPLICATION):
            application = _expect(resource, Application, action)
            tender_owner_id = self._tender_owner(application.tender_id)
            if action is Action.DECIDE_APPLICATION:
                return self._owns(caller, tender_owner_id) and may_manage_tenders(
                    caller.role
                )
            return self._can_view_application(caller, application, tender_owner_id)

        raise ValueError(f"Unknown action {action!r}")

    def _owns(self, caller: Caller, company_id: str) -> bool:
        return caller.company_id is not None and caller.company_id == company_id

    def _tender_owner(self, tender_id: str) -> str:
        tender = self.store.get_tender(tender_id)
        if tender is None:
            raise TenderNotFoundError(tender_id)
        return tender.company_id

    def _can_view_tender(self, caller: Caller, tender: Tender, now: datetime) -> bool:
        role = caller.role
        if role is Role.BIDDER:
            return effective_status(tender, now) is TenderStatus.ACTIVE
        elif role is Role.TENDER_POSTER:
            return self._owns(caller, tender.company_id)
        elif role is Role.COMPANY_ADMIN:
            return self._owns(caller, tender.company_id)
        else:
            assert_never(role)

    def _can_view_application(
        self, caller: Caller, application: Application, tender_owner_id: str
    ) -> bool:
        role = caller.role
        if role is Role.BIDDER:
            return self._owns(caller, application.company_id)
        elif role is Role.TENDER_POSTER:
            return self._owns(caller, tender_owner_id)
        elif role is Role.COMPANY_ADMIN:
            return self._owns(caller, application.company_id) or self._owns(
                caller, tender_owner_id
            )
        else:
            assert_never(role)

    # ========================================================================
    # Single-record reads
    # ========================================================================

    def visible_tender(self, caller: Caller, tender: Tender) -> Tender:
        """Authorize VIEW_TENDER and return the tender with its effective status"""
        self.authorize(caller, Action.VIEW_TENDER, tender)
        return tender.with_effective_status(self.time_provider.now())

    def visible_application(self, caller: Caller, application: Application) -> Application:
        self.authorize(caller, Action.VIEW_APPLICATION, application)
        return application

    # ========================================================================
    # Record sets
    # ========================================================================

    def resolve_visible_tenders(
        self, caller: Caller, filters: TenderFilters | None = None
    ) -> list[Tender]:
        """
        Tenders the caller may see, filtered, ordered and paged

        BIDDER: every tender whose effective status is Active.
        TENDER_POSTER / COMPANY_ADMIN: every tender of the own company.
        """
        filters = filters or TenderFilters()
        now = self.time_provider.now()

        role = caller.role
        if role is Role.BIDDER:
            candidates = [
                tender.with_effective_status(now)
                for tender in self.store.list_tenders(stored_status=TenderStatus.ACTIVE)
            ]
            candidates = [t for t in candidates if t.status is TenderStatus.ACTIVE]
        elif role is Role.TENDER_POSTER or role is Role.COMPANY_ADMIN:
            if caller.company_id is None:
                return []
            candidates = [
                tender.with_effective_status(now)
                for tender in self.store.list_tenders(company_id=caller.company_id)
            ]
        else:
            assert_never(role)

        matching = [t for t in candidates if _matches(t, filters)]
        ordered = self._order(matching, filters.sort, caller)

        limit = min(filters.limit or self.policy.default_page_size, self.policy.max_page_size)
        return ordered[filters.offset : filters.offset + limit]

    def _order(self, tenders: list[Tender], sort: TenderSort, caller: Caller) -> list[Tender]:
        # Newest first is the base order; later sorts are stable on top of it
        newest = sorted(tenders, key=lambda t: (t.created_at, t.tender_id), reverse=True)

        if sort is TenderSort.NEWEST:
            return newest
        if sort is TenderSort.DEADLINE:
            return sorted(newest, key=lambda t: t.deadline)
        if sort is TenderSort.BUDGET:
            return sorted(newest, key=lambda t: t.budget, reverse=True)
        if sort is TenderSort.RELEVANCE:
            services = self._declared_capabilities(caller)
            if not services:
                return newest
            return sorted(
                newest, key=lambda t: capability_overlap(t, services), reverse=True
            )
        raise ValueError(f"Unknown sort {sort!r}")

    def _declared_capabilities(self, caller: Caller) -> list[GoodsService]:
        if not self.policy.capability_ranking_enabled or caller.company_id is None:
            return []
        return self.store.list_company_goods_services(caller.company_id)

    def resolve_visible_applications(
        self,
        caller: Caller,
        tender_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """
        Applications the caller may see, newest first

        BIDDER: the own company's applications.
        TENDER_POSTER: applications against the own company's tenders.
        COMPANY_ADMIN: both.

        With tender_id, a TENDER_POSTER asking about another company's tender
        is refused; bidders and admins just see their own company's bid on it.
        With status, only applications in that status are returned.

        Raises:
            TenderNotFoundError: If tender_id is given and does not exist
            ForbiddenError: As described above
        """
        if tender_id is not None:
            tender = self.store.get_tender(tender_id)
            if tender is None:
                raise TenderNotFoundError(tender_id)

        if caller.company_id is None:
            return []

        own = caller.company_id
        role = caller.role
        if role is Role.BIDDER:
            return self.store.list_applications(
                company_id=own, tender_id=tender_id, status=status
            )
        elif role is Role.TENDER_POSTER:
            if tender_id is not None and tender.company_id != own:
                access_denied_total.labels(action=Action.VIEW_APPLICATION.value).inc()
                raise ForbiddenError(
                    f"Tender {tender_id} belongs to another company",
                    action=Action.VIEW_APPLICATION.value,
                )
            return self.store.list_applications(
                tender_owner_id=own, tender_id=tender_id, status=status
            )
        elif role is Role.COMPANY_ADMIN:
            return self.store.list_applications(
                company_id=own, tender_owner_id=own, tender_id=tender_id, status=status
            )
        else:
            assert_never(role)


def _matches(tender: Tender, filters: TenderFilters) -> bool:
    if filters.search:
        needle = filters.search.strip().lower()
        if needle not in tender.title.lower() and needle not in tender.description.lower():
            return False
    if filters.category is not None and tender.category != filters.category:
        return False
    if filters.status is not None and tender.status is not filters.status:
        return False
    if filters.min_budget is not None and tender.budget < filters.min_budget:
        return False
    if filters.max_budget is not None and tender.budget > filters.max_budget:
        return False
    return True


def _expect(resource: Resource, expected: type, action: Action):
    if not isinstance(resource, expected):
        raise TypeError(
            f"{action.value} expects a {expected.__name__} resource, "
            f"got {type(resource).__name__}"
        )
    return resource
