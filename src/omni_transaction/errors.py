"""Errors raised by the transaction codecs and builders."""


class OmniTransactionError(Exception):
    """Base class for all errors raised by omni_transaction."""


class MalformedInput(OmniTransactionError):
    """Raised when bytes or text cannot be decoded into a valid value."""


class IncompleteTransaction(OmniTransactionError):
    """Raised when a transaction is missing a required field."""

    def __init__(self, field: str, message: str | None = None):
        """Initialize IncompleteTransaction."""
        super().__init__(message or f"Missing required field: {field}")
        self.field = field


class InvalidSighash(OmniTransactionError):
    """Raised when a sighash type has no defined pre-image for an input."""


class InvalidSignature(OmniTransactionError):
    """Raised when a signature does not fit the chain's signature scheme."""


class UnsupportedVariant(OmniTransactionError):
    """Raised on a transaction or action variant that is not supported."""
