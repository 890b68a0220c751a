"""
Company Directory Models

Companies, their members and the goods/services they declare they can supply.
Entities reference each other by id only; the directory never holds object
graphs.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """
    Closed set of member roles

    Every consumer must handle all three; a new role is a deliberate change
    to the access rules, never a silent default.
    """

    BIDDER = "BIDDER"
    TENDER_POSTER = "TENDER_POSTER"
    COMPANY_ADMIN = "COMPANY_ADMIN"


class GoodsService(BaseModel):
    """Catalog entry a company can declare as a capability tag"""

    goods_service_id: str = Field(..., description="Unique goods/service identifier")
    name: str = Field(..., description="Unique name, e.g. 'Road Construction'")
    category: str | None = Field(default=None, description="Grouping, e.g. 'Construction'")
    description: str | None = Field(default=None)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Goods/service name cannot be empty")
        return v.strip()


class Company(BaseModel):
    """A company that publishes tenders, bids on them, or both"""

    company_id: str = Field(..., description="Unique company identifier")
    name: str = Field(..., description="Unique company name")
    industry: str | None = Field(default=None)
    description: str | None = Field(default=None)
    logo_url: str | None = Field(default=None, description="Logo reference (URL or key)")
    created_at: datetime = Field(..., description="Registration timestamp")


class User(BaseModel):
    """
    A member of a company

    The credential hash belongs to the authentication collaborator; the core
    stores it but never reads or changes it.
    """

    user_id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Unique email address")
    credential_hash: str = Field(..., repr=False)
    full_name: str | None = Field(default=None)
    role: Role = Field(..., description="Member role")
    company_id: str | None = Field(
        default=None, description="Owning company (None before onboarding)"
    )
    created_at: datetime = Field(...)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError(f"Invalid email address: {v!r}")
        return v
