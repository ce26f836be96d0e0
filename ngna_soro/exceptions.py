"""Exception hierarchy for the loan engine."""


class NgnaSoroError(Exception):
    """Base exception for all loan engine errors."""


class InvalidArgumentError(NgnaSoroError, ValueError):
    """Raised when numeric or date input to a calculation is malformed."""


class InvalidLoanStateError(NgnaSoroError):
    """Raised when a loan is not in a state that allows the operation."""


class LoanNotFoundError(NgnaSoroError):
    """Raised when a referenced loan does not exist."""


class TransientPersistenceError(NgnaSoroError):
    """Raised when the storage backend cannot be read or written."""


class NotificationDeliveryError(NgnaSoroError):
    """Raised when a notification could not be delivered on any channel."""
