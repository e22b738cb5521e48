class LedgerError(Exception):
    """Base class for errors raised by the time-entry ledger."""


class ConflictError(LedgerError):
    """Second open timer for a user, overlapping entry, or a stale write."""


class InvalidStateError(LedgerError):
    """Transition not allowed from the entry's current status."""


class NotFoundError(LedgerError):
    """Entry missing or outside the caller's scope. Both look the same to callers."""


class ValidationError(LedgerError):
    pass


class AuthorizationError(LedgerError):
    pass
