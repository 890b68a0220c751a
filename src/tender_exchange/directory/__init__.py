"""
Directory Module - Companies, members and capability tags

Fun fact: A company's capability tags here are only a ranking hint. Nobody is
kept from bidding because their tags do not match the tender.
"""

from tender_exchange.directory.models import Company, GoodsService, Role, User

__all__ = [
    "Company",
    "GoodsService",
    "Role",
    "User",
]
