"""
Application Workflow Handlers

Submission of bids and the one-shot accept/reject decision.

Submission checks run in a fixed order so callers always see the most
specific failure: authorization, amount, tender existence, self-bid, tender
still accepting, duplicate pre-check, then the insert whose uniqueness
constraint settles any race.
"""

from decimal import Decimal

from tender_exchange.access.models import Action, Caller
from tender_exchange.access.resolver import AccessScopeResolver
from tender_exchange.application import invariants
from tender_exchange.application.models import Application, ApplicationStatus
from tender_exchange.kernel.errors import (
    ApplicationNotFoundError,
    DuplicateApplicationError,
    InvalidTransitionError,
    TenderNotFoundError,
)
from tender_exchange.kernel.ids import generate_id
from tender_exchange.kernel.logging import LogOperation, get_logger
from tender_exchange.kernel.metrics import (
    application_decisions_total,
    applications_submitted_total,
    duplicate_applications_total,
    track_operation,
)
from tender_exchange.kernel.time import TimeProvider
from tender_exchange.store import PersistenceStore
from tender_exchange.tender.invariants import coerce_amount, validate_amount_positive
from tender_exchange.tender.models import effective_status

logger = get_logger(__name__)


class ApplicationWorkflow:
    """Submission and decision on applications"""

    def __init__(
        self,
        store: PersistenceStore,
        resolver: AccessScopeResolver,
        time_provider: TimeProvider,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.time_provider = time_provider

    @track_operation("submit_application")
    def submit(
        self,
        tender_id: str,
        acting_company_id: str,
        quotation_amount: Decimal | int | str,
        proposal_text: str,
        actor: Caller,
    ) -> Application:
        """
        Submit acting_company_id's bid on a tender

        Raises:
            ForbiddenError: If actor is not a bidder/admin of acting_company_id
            ValidationError: If quotation_amount <= 0
            TenderNotFoundError: If the tender does not exist
            SelfBidError: If acting_company_id owns the tender
            InvalidTransitionError: If the tender is Expired or ApplicationClosed
            DuplicateApplicationError: If the company already applied
        """
        with LogOperation(
            logger,
            "submit_application",
            tender_id=tender_id,
            company_id=acting_company_id,
            actor_id=actor.user_id,
            quotation_amount=str(quotation_amount),
        ):
            self.resolver.authorize(actor, Action.SUBMIT_APPLICATION, acting_company_id)

            amount = coerce_amount(quotation_amount, "Quotation amount")
            validate_amount_positive(amount, "Quotation amount")

            tender = self.store.get_tender(tender_id)
            if tender is None:
                raise TenderNotFoundError(tender_id)

            invariants.validate_not_self_bid(tender, acting_company_id)

            now = self.time_provider.now()
            invariants.validate_accepting_applications(
                tender_id, effective_status(tender, now)
            )

            try:
                invariants.validate_no_existing_application(
                    self.store.find_application(tender_id, acting_company_id),
                    tender_id,
                    acting_company_id,
                )
            except DuplicateApplicationError:
                duplicate_applications_total.labels(detected_by="precheck").inc()
                raise

            application = Application(
                application_id=generate_id("application"),
                tender_id=tender_id,
                company_id=acting_company_id,
                status=ApplicationStatus.PENDING,
                quotation_amount=amount,
                proposal_text=proposal_text or "",
                created_at=now,
            )
            try:
                self.store.insert_application(application)
            except DuplicateApplicationError:
                # Lost the race to a concurrent submission
                duplicate_applications_total.labels(detected_by="constraint").inc()
                raise

            applications_submitted_total.inc()
            return application

    @track_operation("decide_application")
    def decide(
        self,
        application_id: str,
        actor: Caller,
        decision: ApplicationStatus | str,
    ) -> Application:
        """
        Accept or reject a pending application

        Other applications on the same tender are left alone, and the
        tender's own status is not consulted.

        Raises:
            ApplicationNotFoundError: If the application does not exist
            ForbiddenError: If actor is not a poster/admin of the tender owner
            ValidationError: If decision is not accepted or rejected
            InvalidTransitionError: If already decided, including by a
                concurrent decision that won the race
        """
        with LogOperation(
            logger,
            "decide_application",
            application_id=application_id,
            actor_id=actor.user_id,
            decision=str(getattr(decision, "value", decision)),
        ):
            application = self.get_application(application_id)
            self.resolver.authorize(actor, Action.DECIDE_APPLICATION, application)
            target = invariants.parse_decision(decision)
            invariants.validate_decidable(application, target)

            now = self.time_provider.now()
            if not self.store.update_application_status_if(
                application_id, ApplicationStatus.PENDING, target, actor.user_id, now
            ):
                current = self.get_application(application_id)
                raise InvalidTransitionError(
                    application_id, current.status.value, target.value
                )

            application_decisions_total.labels(decision=target.value).inc()
            return application.model_copy(
                update={"status": target, "decided_at": now, "decided_by": actor.user_id}
            )

    def get_application(self, application_id: str) -> Application:
        """
        Raises:
            ApplicationNotFoundError: If the application does not exist
        """
        application = self.store.get_application(application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)
        return application
