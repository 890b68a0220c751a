"""
Exchange Policy - tunable parameters of the core

Everything that is a product knob rather than a domain invariant lives here.
The invariants themselves (positive amounts, forward-only status, one bid per
company per tender) are not configurable.
"""

import os

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "TENDER_EXCHANGE_"


class ExchangePolicy(BaseModel):
    """Configuration for validation limits, listing size and ranking"""

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    min_title_length: int = Field(
        default=1,
        ge=1,
        description="Minimum tender title length after stripping whitespace",
    )

    min_company_name_length: int = Field(
        default=2,
        ge=1,
        description="Minimum company name length",
    )

    max_company_name_length: int = Field(
        default=100,
        ge=1,
        description="Maximum company name length",
    )

    default_page_size: int = Field(
        default=50,
        ge=1,
        description="Tender listing size when the caller gives no limit",
    )

    max_page_size: int = Field(
        default=200,
        ge=1,
        description="Upper bound on any tender listing size",
    )

    capability_ranking_enabled: bool = Field(
        default=True,
        description="Whether the relevance sort uses declared capabilities",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "ExchangePolicy":
        if self.min_company_name_length > self.max_company_name_length:
            raise ValueError("min_company_name_length exceeds max_company_name_length")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size exceeds max_page_size")
        return self

    @classmethod
    def from_env(cls) -> "ExchangePolicy":
        """
        Build a policy from TENDER_EXCHANGE_* environment variables

        e.g. TENDER_EXCHANGE_MAX_PAGE_SIZE=100. Unset fields keep defaults.
        """
        overrides = {}
        for name in cls.model_fields:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)
