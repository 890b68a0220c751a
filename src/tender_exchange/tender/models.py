"""
Tender Domain Models

Tender lifecycle states, the transition table and the effective-status rule.

Fun fact: Public tenders with sealed bids and a fixed closing date were already
standard for Venetian shipbuilding contracts in the 1400s - the deadline has
always been the one rule nobody gets to bend.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from tender_exchange.kernel.time import ensure_utc


class TenderStatus(str, Enum):
    """
    Tender lifecycle states

    Finite state machine:
    ACTIVE → EXPIRED              (deadline passed)
    ACTIVE → APPLICATION_CLOSED   (closed by the owning company)

    EXPIRED and APPLICATION_CLOSED are terminal.
    """

    ACTIVE = "Active"
    EXPIRED = "Expired"
    APPLICATION_CLOSED = "ApplicationClosed"


TENDER_TRANSITIONS: dict[TenderStatus, frozenset[TenderStatus]] = {
    TenderStatus.ACTIVE: frozenset({TenderStatus.EXPIRED, TenderStatus.APPLICATION_CLOSED}),
    TenderStatus.EXPIRED: frozenset(),
    TenderStatus.APPLICATION_CLOSED: frozenset(),
}


def can_transition(current: TenderStatus, target: TenderStatus) -> bool:
    """Check the tender transition table"""
    return target in TENDER_TRANSITIONS[current]


class Tender(BaseModel):
    """
    A procurement request published by a company

    ``status`` is the stored status. Read paths hand out copies whose status
    is the effective status (see ``effective_status``).
    """

    tender_id: str = Field(..., description="Unique tender identifier")
    title: str = Field(..., description="Tender title")
    description: str = Field(default="", description="Tender description")
    category: str | None = Field(default=None, description="Optional goods/service category")
    deadline: datetime = Field(..., description="Submission deadline (UTC)")
    budget: Decimal = Field(..., gt=0, description="Budget, strictly positive")
    company_id: str = Field(..., description="Owning company")
    created_by: str = Field(..., description="Creating user")
    status: TenderStatus = Field(default=TenderStatus.ACTIVE, description="Stored status")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last status change")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Tender title cannot be empty")
        return v.strip()

    @field_validator("deadline", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def is_past_deadline(self, now: datetime) -> bool:
        return ensure_utc(now) > self.deadline

    def with_effective_status(self, now: datetime) -> "Tender":
        """Copy of this tender reporting its effective status"""
        return self.model_copy(update={"status": effective_status(self, now)})


def effective_status(tender: Tender, now: datetime) -> TenderStatus:
    """
    Status observed at read time

    An Active tender whose deadline has passed is Expired, whether or not the
    expiry has been persisted. Every other stored status is reported as is.
    """
    if tender.status is TenderStatus.ACTIVE and tender.is_past_deadline(now):
        return TenderStatus.EXPIRED
    return tender.status
