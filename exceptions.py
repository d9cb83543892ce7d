"""
Error types raised by the stores and the summary engine.

Each error knows the HTTP status it maps to; ``main`` renders any of them as
``{"error": message, **extra}``.
"""


class BudgetAppError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        return {"error": self.message, **self.extra}


class ValidationError(BudgetAppError):
    """Missing or malformed input."""
    status_code = 400


class NotFoundError(BudgetAppError):
    status_code = 404


class ConflictError(BudgetAppError):
    """Duplicate name, overlapping period, or delete blocked by references."""
    status_code = 400


class StorageError(BudgetAppError):
    """The database rejected or failed a statement."""
    status_code = 500
