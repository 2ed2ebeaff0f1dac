"""
Business-rule exceptions for the back office.

Every error carries the name of the rule that failed and the values that
failed it, so the API can answer with actionable detail instead of a bare
"error" string. `main.py` turns them into JSON responses.
"""


class BackOfficeError(Exception):
    """Base for every business-rule failure."""

    status_code = 400

    def __init__(self, message: str, requirement: str | None = None, **details):
        super().__init__(message)
        self.message = message
        self.requirement = requirement
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.requirement:
            body["requirement"] = self.requirement
        body.update(self.details)
        return body


class ValidationError(BackOfficeError):
    """Bad or missing input, rejected before any write."""
    status_code = 400


class AuthorizationError(BackOfficeError):
    """Wrong role or missing principal."""
    status_code = 403


class NotFoundError(BackOfficeError):
    """Loan, product, member or account missing."""
    status_code = 404


class SequenceViolation(BackOfficeError):
    """Approval attempted out of hierarchy order, twice, or on a closed request."""
    status_code = 409


class ConflictError(BackOfficeError):
    """Duplicate submission (e.g. a payment reference already used)."""
    status_code = 409


class InvariantViolation(BackOfficeError):
    """Unbalanced journal entry or any other state that must never be stored."""
    status_code = 500
