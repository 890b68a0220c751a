"""
Tender Exchange - Procurement lifecycle engine

Companies publish tenders, other companies bid on them, and role-scoped
access rules decide who may see or change what. Deadline expiry is computed
at read time, so no tender is ever reported Active past its deadline.

Fun fact: Herodotus described Babylonian auctions around 500 BC - bidding
has had a closing time for at least two and a half thousand years.
"""

__version__ = "0.1.0"

from tender_exchange.exchange import DashboardSummary, TenderExchange  # noqa: E402

__all__ = ["TenderExchange", "DashboardSummary", "__version__"]
