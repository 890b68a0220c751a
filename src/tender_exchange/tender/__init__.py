"""
Tender Module - Publication, closing and expiry of tenders

- Forward-only status machine (Active → Expired | ApplicationClosed)
- Effective status computed from the deadline at read time
- Compare-and-swap status writes
"""

from tender_exchange.tender.models import (
    TENDER_TRANSITIONS,
    Tender,
    TenderStatus,
    effective_status,
)

__all__ = [
    "Tender",
    "TenderStatus",
    "TENDER_TRANSITIONS",
    "effective_status",
]
