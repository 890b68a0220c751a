"""
Kernel - Shared infrastructure for every module

Errors, ids, time, policy, logging, metrics and retry. Nothing here knows
about tenders or applications.
"""

from tender_exchange.kernel.errors import (
    DuplicateApplicationError,
    ExchangeError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SelfBidError,
    StoreUnavailableError,
    ValidationError,
)
from tender_exchange.kernel.ids import generate_id
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Policy
    "ExchangePolicy",
    # Errors
    "ExchangeError",
    "ValidationError",
    "ForbiddenError",
    "InvalidTransitionError",
    "DuplicateApplicationError",
    "SelfBidError",
    "StoreUnavailableError",
    "NotFoundError",
]
