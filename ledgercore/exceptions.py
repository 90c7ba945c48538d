"""Domain-specific exceptions for the shared ledger core."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when a member, expense or settlement cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class ReferentialIntegrityViolation(Exception):
    """Raised when deleting a member that is still referenced by an expense."""

    def __init__(self, member_id: int, expense_ids=()) -> None:
        self.member_id = member_id
        self.expense_ids = tuple(expense_ids)
        super().__init__(
            f"Member {member_id} is referenced by {len(self.expense_ids)} expense(s) and cannot be deleted"
        )


class PreconditionViolation(AssertionError):
    """Raised when a core operation receives an inconsistent snapshot."""
