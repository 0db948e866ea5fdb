"""zkremint error handling.

Structured exception hierarchy shared by the accumulator, derivation scheme,
claim relation and the reference ledger.
"""

from .exceptions import (
    ConfigurationError,
    ConstraintViolation,
    CryptographicError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    IndexOutOfRange,
    InsufficientBalance,
    LedgerError,
    NullifierAlreadySpent,
    ProofRejected,
    RangeViolation,
    RootMismatch,
    TreeFull,
    UnknownRoot,
    ValidationError,
    ZKRemintError,
    create_range_violation,
    create_validation_error,
)

__all__ = [
    "ZKRemintError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "ValidationError",
    "CryptographicError",
    "ConfigurationError",
    # Protocol taxonomy
    "TreeFull",
    "IndexOutOfRange",
    "RootMismatch",
    "ConstraintViolation",
    "RangeViolation",
    # Ledger
    "LedgerError",
    "UnknownRoot",
    "NullifierAlreadySpent",
    "ProofRejected",
    "InsufficientBalance",
    # Helpers
    "create_validation_error",
    "create_range_violation",
]
