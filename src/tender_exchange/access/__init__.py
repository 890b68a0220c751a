"""
Access Module - Role-scoped visibility and the authorization gate
"""

from tender_exchange.access.models import Action, Caller, TenderFilters, TenderSort

__all__ = [
    "Action",
    "Caller",
    "TenderFilters",
    "TenderSort",
]
