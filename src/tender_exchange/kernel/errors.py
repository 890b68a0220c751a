"""
Custom exceptions for Tender Exchange

Every failure the core can report is a typed error with a stable ``code``,
so the routing layer can map it to a response without parsing messages.

Fun fact: HTTP status 409 Conflict was defined in RFC 2068 in 1997 - the
exact shape of a company trying to bid twice on the same tender!
"""


class ExchangeError(Exception):
    """Base exception for all Tender Exchange errors"""

    code = "exchange_error"


class ValidationError(ExchangeError):
    """
    Raised when input is malformed or out of range

    Non-positive amounts, past deadlines, empty titles. Never auto-retried.
    """

    code = "validation_error"


class DuplicateCompanyError(ValidationError):
    """Raised when a company name is already registered"""

    code = "duplicate_company"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Company name '{name}' is already registered")


class ForbiddenError(ExchangeError):
    """Raised when the caller lacks the role or ownership required for an action"""

    code = "forbidden"

    def __init__(self, message: str, action: str | None = None) -> None:
        self.action = action
        super().__init__(message)


class InvalidTransitionError(ExchangeError):
    """
    Raised when an entity is in a terminal or incompatible state

    Callers should re-fetch the current state before retrying with a
    different intent.
    """

    code = "invalid_transition"

    def __init__(
        self, entity_id: str, current_status: str, requested_status: str
    ) -> None:
        self.entity_id = entity_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"{entity_id} cannot move from {current_status} to {requested_status}"
        )


class DuplicateApplicationError(ExchangeError):
    """Raised when a company already has an application for the tender"""

    code = "duplicate_application"

    def __init__(self, tender_id: str, company_id: str) -> None:
        self.tender_id = tender_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} already applied to tender {tender_id}"
        )


class SelfBidError(ExchangeError):
    """Raised when a company tries to bid on its own tender"""

    code = "self_bid"

    def __init__(self, tender_id: str, company_id: str) -> None:
        self.tender_id = tender_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} owns tender {tender_id} and cannot bid on it"
        )


class StoreUnavailableError(ExchangeError):
    """
    Raised when the persistence collaborator fails

    The core never retries; the collaborator layer may retry with backoff.
    """

    code = "store_unavailable"


class NotFoundError(ExchangeError):
    """Base class for missing entities"""

    code = "not_found"


class TenderNotFoundError(NotFoundError):
    """Raised when tender does not exist"""

    def __init__(self, tender_id: str) -> None:
        self.tender_id = tender_id
        super().__init__(f"Tender {tender_id} not found")


class ApplicationNotFoundError(NotFoundError):
    """Raised when application does not exist"""

    def __init__(self, application_id: str) -> None:
        self.application_id = application_id
        super().__init__(f"Application {application_id} not found")


class CompanyNotFoundError(NotFoundError):
    """Raised when company does not exist"""

    def __init__(self, company_id: str) -> None:
        self.company_id = company_id
        super().__init__(f"Company {company_id} not found")


class UserNotFoundError(NotFoundError):
    """Raised when user does not exist"""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")
