"""Application error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe to
return to the client. Handlers in ``error_handlers`` turn them into JSON.
"""
from fastapi import status


class DayboardError(Exception):
    """Base class for errors raised by the service layer."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(DayboardError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class InvalidInput(DayboardError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid input"


class InvalidPlan(InvalidInput):
    message = "Invalid plan"


class NoEmailOnFile(InvalidInput):
    message = "No email found"


class NotFound(DayboardError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class NoActiveSubscription(NotFound):
    message = "No active subscription found"


class NotEligible(DayboardError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not eligible for Premium bonus"


class ExternalServiceFailure(DayboardError):
    """A billing or storage collaborator call failed."""
    message = "A service we depend on failed, please try again"


class PartialFailure(DayboardError):
    """The provider write succeeded but local persistence did not.

    Needs manual reconciliation, so the context needed for it travels with
    the exception and is logged by the request handler.
    """
    message = "Your request was only partially applied, support has been notified"

    def __init__(self, message: str | None = None, *, user_id: str, operation: str, provider_ids: dict | None = None):
        super().__init__(message)
        self.user_id = user_id
        self.operation = operation
        self.provider_ids = provider_ids or {}
