"""Exception hierarchy for lendbook.

All errors derive from ValueError so callers that only care about
"bad input" can keep catching ValueError.
"""


class LendbookError(ValueError):
    """Base exception for all lendbook errors."""


class ValidationError(LendbookError):
    """Raised when input is malformed or out of range."""


class ConsistencyError(LendbookError):
    """Raised when well-formed input conflicts with stored state."""


class NotFoundError(LendbookError):
    """Raised when a referenced loan, party or schedule line does not exist."""
