"""
Identity resolution

Turns an opaque credential into a Caller. Token issuance and verification
belong to the authentication collaborator; by the time a credential reaches
here it is trusted.
"""

from typing import Protocol

from tender_exchange.access.models import Caller
from tender_exchange.kernel.errors import ForbiddenError
from tender_exchange.store import PersistenceStore


class IdentityProvider(Protocol):
    """Protocol for identity resolution - allows swapping in a token verifier"""

    def resolve(self, credential: str) -> Caller:
        """Return the Caller behind a credential or raise ForbiddenError"""
        ...


class StoreIdentityProvider:
    """
    Resolves a user id through the store

    Used by the CLI, where the acting user is named on the command line.
    """

    def __init__(self, store: PersistenceStore) -> None:
        self.store = store

    def resolve(self, credential: str) -> Caller:
        user = self.store.get_user(credential)
        if user is None:
            raise ForbiddenError(f"Unknown identity {credential!r}")
        return Caller(user_id=user.user_id, role=user.role, company_id=user.company_id)
