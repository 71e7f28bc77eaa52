# Overview: Typed failures raised by the settlement and loyalty services.

"""
Error taxonomy shared by services, routes and CLI.

Every service validates before it mutates, so raising one of these inside a
transaction leaves stock, balances and points untouched once the session is
rolled back.
"""


class LedgerError(Exception):
    """Base class for expected, reportable operation failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """400-level input or business-rule problem."""
    status_code = 400


class NotFoundError(LedgerError):
    """404-level missing sale, customer, product or promotion."""
    status_code = 404


class InvariantViolation(LedgerError):
    """409-level: the operation would drive points or balance negative."""
    status_code = 409
