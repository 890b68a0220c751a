"""
Access Models

Resolved caller identity, the actions the gate understands and the listing
filters callers can supply.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from tender_exchange.directory.models import Role
from tender_exchange.tender.models import TenderStatus


class Caller(BaseModel):
    """
    Identity resolved by the IdentityProvider

    Trusted completely: the core performs no credential validation.
    """

    user_id: str
    role: Role
    company_id: str | None = None

    model_config = {"frozen": True}


class Action(str, Enum):
    """Everything the authorization gate can be asked about"""

    CREATE_TENDER = "create_tender"
    CLOSE_TENDER = "close_tender"
    VIEW_TENDER = "view_tender"
    SUBMIT_APPLICATION = "submit_application"
    VIEW_APPLICATION = "view_application"
    DECIDE_APPLICATION = "decide_application"
    MANAGE_COMPANY = "manage_company"


class TenderSort(str, Enum):
    """
    Listing orders

    NEWEST: creation time, descending (default)
    DEADLINE: deadline, ascending
    BUDGET: budget, descending
    RELEVANCE: overlap with the caller's declared capabilities, then newest
    """

    NEWEST = "newest"
    DEADLINE = "deadline"
    BUDGET = "budget"
    RELEVANCE = "relevance"


class TenderFilters(BaseModel):
    """Caller-supplied tender listing filters"""

    search: str | None = Field(
        default=None, description="Case-insensitive substring of title or description"
    )
    category: str | None = Field(default=None, description="Exact category match")
    status: TenderStatus | None = Field(
        default=None, description="Exact match on effective status"
    )
    min_budget: Decimal | None = Field(default=None, gt=0)
    max_budget: Decimal | None = Field(default=None, gt=0)
    sort: TenderSort = Field(default=TenderSort.NEWEST)
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_budget_range(self) -> "TenderFilters":
        if (
            self.min_budget is not None
            and self.max_budget is not None
            and self.min_budget > self.max_budget
        ):
            raise ValueError("min_budget cannot exceed max_budget")
        return self
