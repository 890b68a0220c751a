"""
Tender Lifecycle Handlers

Creation, closing and expiry of tenders. Every mutation runs the same
pipeline: load, authorize, validate against the transition table, then a
single conditional write to the store.

Fun fact: The word "tender" in procurement comes from the Old French
"tendre", to stretch out or offer - the buyer offers the work, the bidders
offer their price.
"""

from datetime import datetime
from decimal import Decimal

from tender_exchange.access.models import Action, Caller
from tender_exchange.access.resolver import AccessScopeResolver
from tender_exchange.kernel.errors import InvalidTransitionError, TenderNotFoundError
from tender_exchange.kernel.ids import generate_id
from tender_exchange.kernel.logging import LogOperation, get_logger
from tender_exchange.kernel.metrics import (
    tenders_closed_total,
    tenders_created_total,
    tenders_expired_total,
    track_operation,
)
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import TimeProvider, ensure_utc
from tender_exchange.store import PersistenceStore
from tender_exchange.tender import invariants
from tender_exchange.tender.models import Tender, TenderStatus, effective_status

logger = get_logger(__name__)


class TenderLifecycleManager:
    """
    Owns tender creation and status transitions

    Holds no state besides its collaborators; every call reads the store
    afresh.
    """

    def __init__(
        self,
        store: PersistenceStore,
        resolver: AccessScopeResolver,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
    ) -> None:
        """
        Args:
            store: Persistence collaborator
            resolver: Authorization gate consulted before every mutation
            time_provider: Source of current time
            policy: Validation limits
        """
        self.store = store
        self.resolver = resolver
        self.time_provider = time_provider
        self.policy = policy

    @track_operation("create_tender")
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
        """
        Publish a new Active tender for company_id

        Raises:
            ForbiddenError: If actor is not a poster/admin of company_id
            ValidationError: On empty title, non-positive budget or a
                deadline before today
        """
        with LogOperation(
            logger, "create_tender", company_id=company_id, actor_id=actor.user_id
        ):
            self.resolver.authorize(actor, Action.CREATE_TENDER, company_id)

            now = self.time_provider.now()
            clean_title = invariants.validate_title(title, self.policy.min_title_length)
            amount = invariants.coerce_amount(budget, "Budget")
            invariants.validate_budget_positive(amount)
            invariants.validate_deadline_not_past(deadline, now)

            tender = Tender(
                tender_id=generate_id("tender"),
                title=clean_title,
                description=(description or "").strip(),
                category=category.strip() if category and category.strip() else None,
                deadline=ensure_utc(deadline),
                budget=amount,
                company_id=company_id,
                created_by=actor.user_id,
                status=TenderStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self.store.insert_tender(tender)
            tenders_created_total.inc()

            logger.info(
                "Tender published",
                tender_id=tender.tender_id,
                company_id=company_id,
                deadline=tender.deadline.isoformat(),
            )
            return tender.with_effective_status(now)

    @track_operation("close_tender")
    def close_tender(self, tender_id: str, actor: Caller) -> Tender:
        """
        Stop accepting applications: Active → ApplicationClosed

        Pending applications are left pending.

        Raises:
            TenderNotFoundError: If the tender does not exist
            ForbiddenError: If actor is not a poster/admin of the owning company
            InvalidTransitionError: If the tender is (effectively) terminal, or
                a concurrent transition won the race
        """
        with LogOperation(logger, "close_tender", tender_id=tender_id, actor_id=actor.user_id):
            tender = self.get_tender(tender_id)
            self.resolver.authorize(actor, Action.CLOSE_TENDER, tender)

            now = self.time_provider.now()
            target = TenderStatus.APPLICATION_CLOSED
            invariants.validate_transition(tender_id, effective_status(tender, now), target)

            if not self.store.update_tender_status_if(
                tender_id, TenderStatus.ACTIVE, target, now
            ):
                current = self.get_tender(tender_id)
                raise InvalidTransitionError(
                    tender_id, effective_status(current, now).value, target.value
                )

            tenders_closed_total.inc()
            return tender.model_copy(update={"status": target, "updated_at": now})

    def get_tender(self, tender_id: str) -> Tender:
        """
        Raw store read, stored status untouched

        Raises:
            TenderNotFoundError: If the tender does not exist
        """
        tender = self.store.get_tender(tender_id)
        if tender is None:
            raise TenderNotFoundError(tender_id)
        return tender

    @track_operation("expire_overdue")
    def expire_overdue(self) -> list[str]:
        """
        Persist Expired for every stored-Active tender past its deadline

        Optional housekeeping: reads already report these tenders as
        Expired. Applications are not touched.

        Returns:
            Ids of tenders this sweep moved to Expired
        """
        with LogOperation(logger, "expire_overdue"):
            now = self.time_provider.now()
            expired: list[str] = []
            for tender in self.store.list_overdue_active_tenders(now):
                if not tender.is_past_deadline(now):
                    continue
                if self.store.update_tender_status_if(
                    tender.tender_id, TenderStatus.ACTIVE, TenderStatus.EXPIRED, now
                ):
                    expired.append(tender.tender_id)

            if expired:
                tenders_expired_total.inc(len(expired))
                logger.info("Persisted tender expiry", count=len(expired))
            return expired
