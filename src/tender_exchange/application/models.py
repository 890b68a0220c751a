"""
Application Domain Models

An application is one company's bid on another company's tender.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from tender_exchange.kernel.time import ensure_utc


class ApplicationStatus(str, Enum):
    """
    Application lifecycle states

    PENDING → ACCEPTED
    PENDING → REJECTED

    A decision is one-shot: ACCEPTED and REJECTED are terminal.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

DECISIONS = frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED})


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    """Check the application transition table"""
    return target in APPLICATION_TRANSITIONS[current]


class Application(BaseModel):
    """A bid submitted by one company against another company's tender"""

    application_id: str = Field(..., description="Unique application identifier")
    tender_id: str = Field(..., description="Tender applied to")
    company_id: str = Field(..., description="Bidding company")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING)
    quotation_amount: Decimal = Field(..., gt=0, description="Quoted price, strictly positive")
    proposal_text: str = Field(default="", description="Free-text proposal")
    created_at: datetime = Field(..., description="Submission timestamp")
    decided_at: datetime | None = Field(default=None, description="When the decision was made")
    decided_by: str | None = Field(default=None, description="User who decided")

    @field_validator("created_at", "decided_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @property
    def is_terminal(self) -> bool:
        return not APPLICATION_TRANSITIONS[self.status]
