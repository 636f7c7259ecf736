"""Fault types raised by the persistence and ledger layers."""


class PersistenceError(Exception):
    """A write to the backing store could not be applied."""
    pass


class AllocationPersistenceError(PersistenceError):
    """A goal or purchase write failed part-way through an allocation."""

    def __init__(self, message: str, purchase_id: str, applied_steps: int = 0):
        super().__init__(message)
        self.purchase_id = purchase_id
        self.applied_steps = applied_steps


class LedgerConflictError(PersistenceError):
    """A goal row changed between read and write."""
    pass
