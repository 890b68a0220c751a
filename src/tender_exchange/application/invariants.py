"""
Application Invariants

Pure checks run by the workflow before it writes. The duplicate check here is
advisory; the store's uniqueness constraint has the final word.
"""

from tender_exchange.application.models import (
    DECISIONS,
    Application,
    ApplicationStatus,
    can_transition,
)
from tender_exchange.kernel.errors import (
    DuplicateApplicationError,
    InvalidTransitionError,
    SelfBidError,
    ValidationError,
)
from tender_exchange.tender.models import Tender, TenderStatus


def validate_not_self_bid(tender: Tender, acting_company_id: str) -> None:
    """
    A company never bids on its own tender

    Raises:
        SelfBidError: If acting_company_id owns the tender
    """
    if tender.company_id == acting_company_id:
        raise SelfBidError(tender.tender_id, acting_company_id)


def validate_accepting_applications(tender_id: str, status: TenderStatus) -> None:
    """
    Only effective-Active tenders accept applications

    Raises:
        InvalidTransitionError: If the tender is Expired or ApplicationClosed
    """
    if status is not TenderStatus.ACTIVE:
        raise InvalidTransitionError(tender_id, status.value, "application submitted")


def validate_no_existing_application(
    existing: Application | None, tender_id: str, company_id: str
) -> None:
    """
    Raises:
        DuplicateApplicationError: If the company already applied
    """
    if existing is not None:
        raise DuplicateApplicationError(tender_id, company_id)


def parse_decision(decision: ApplicationStatus | str) -> ApplicationStatus:
    """
    Normalize a decision to accepted or rejected

    Raises:
        ValidationError: If decision is pending or not a status at all
    """
    try:
        status = ApplicationStatus(decision)
    except ValueError as e:
        raise ValidationError(f"Unknown decision {decision!r}") from e
    if status not in DECISIONS:
        raise ValidationError(
            f"Decision must be one of {sorted(d.value for d in DECISIONS)}, got {status.value}"
        )
    return status


def validate_decidable(application: Application, decision: ApplicationStatus) -> None:
    """
    Decisions are one-shot

    Raises:
        InvalidTransitionError: If the application was already decided
    """
    if not can_transition(application.status, decision):
        raise InvalidTransitionError(
            application.application_id, application.status.value, decision.value
        )
