"""Error taxonomy for Issuebook.

Storage failures are logged and swallowed at the store boundary; the query
path never raises. Broken invariants are programmer errors and surface as
assertion failures.
"""

from __future__ import annotations


class IssuebookError(Exception):
    """Base class for Issuebook errors."""


class StoreUnavailable(IssuebookError):
    """The database backing the store could not be read or written."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class ConsistencyViolation(IssuebookError, AssertionError):
    """An invariant of the object graph does not hold."""
