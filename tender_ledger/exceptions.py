"""Exception hierarchy for tender-ledger."""


class LedgerError(ValueError):
    """Base exception for all ledger errors."""


class InvalidTerms(LedgerError):
    """Raised when loan terms cannot produce a schedule."""


class PaymentExceedsDue(LedgerError):
    """Raised when a payment amount is zero or negative.

    Overpayment is accepted and never raises this.
    """


class InconsistentState(LedgerError):
    """Raised when a ledger state violates its invariants.

    Signals a caller bug, e.g. replaying payments out of date order.
    """


class InvalidTransition(LedgerError):
    """Raised when a manual status change is not allowed from the current status."""


class LoanNotFound(LedgerError):
    """Raised when a referenced loan does not exist."""


class PaymentNotFound(LedgerError):
    """Raised when a referenced payment does not exist."""
