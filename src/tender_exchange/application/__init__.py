"""
Application Module - Bids and their one-shot decisions
"""

from tender_exchange.application.models import (
    APPLICATION_TRANSITIONS,
    Application,
    ApplicationStatus,
)

__all__ = [
    "Application",
    "ApplicationStatus",
    "APPLICATION_TRANSITIONS",
]
