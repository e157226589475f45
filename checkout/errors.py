class PaymentValidationError(ValueError):
    """Input rejected before any network call is made."""


class ChargeInitiationError(RuntimeError):
    """The remote function did not accept the charge."""

    def __init__(self, message: str, attempt=None):
        super().__init__(message)
        self.attempt = attempt


class AttemptConflictError(Exception):
    """A payment attempt for the same target is already in flight."""


class AttemptStateError(Exception):
    """The requested transition is not valid from the attempt's current state."""
