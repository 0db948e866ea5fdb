"""Exception hierarchy for zkremint.

This module defines the structured exceptions raised by the accumulator, the
derivation scheme, the claim relation and the reference ledger. Every failure
is detected locally and raised synchronously; none of them is retryable.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CRYPTOGRAPHIC = "cryptographic"
    MERKLE = "merkle"
    CIRCUIT = "circuit"
    LEDGER = "ledger"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "request_id": self.request_id,
            "metadata": self.metadata,
        }


class ZKRemintError(Exception):
    """Base exception for all zkremint errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        return " | ".join(parts)


class ValidationError(ZKRemintError):
    """Validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class CryptographicError(ZKRemintError):
    """Cryptographic error."""

    def __init__(self, message: str, algorithm: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CRYPTOGRAPHIC)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.algorithm = algorithm

    def to_dict(self) -> Dict[str, Any]:
        """Convert cryptographic error to dictionary."""
        data = super().to_dict()
        data.update({"algorithm": self.algorithm})
        return data


class ConfigurationError(ZKRemintError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class TreeFull(ZKRemintError):
    """Insert attempted beyond the accumulator's ``2^depth`` capacity."""

    def __init__(self, message: str, capacity: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            error_code="TREE_FULL",
            category=ErrorCategory.MERKLE,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.capacity = capacity

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"capacity": self.capacity})
        return data


class IndexOutOfRange(ZKRemintError):
    """Membership proof requested for a leaf that does not exist."""

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        next_index: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            error_code="INDEX_OUT_OF_RANGE",
            category=ErrorCategory.MERKLE,
            **kwargs,
        )
        self.index = index
        self.next_index = next_index

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"index": self.index, "next_index": self.next_index})
        return data


class RootMismatch(ZKRemintError):
    """A replica's recomputed root disagrees with the authoritative root.

    Indicates missed or reordered events, or a hashing-parameter mismatch.
    """

    def __init__(
        self,
        message: str,
        expected_root: Optional[int] = None,
        actual_root: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            error_code="ROOT_MISMATCH",
            category=ErrorCategory.MERKLE,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.expected_root = expected_root
        self.actual_root = actual_root

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "expected_root": hex(self.expected_root)
                if self.expected_root is not None
                else None,
                "actual_root": hex(self.actual_root)
                if self.actual_root is not None
                else None,
            }
        )
        return data


class ConstraintViolation(ZKRemintError):
    """The witness does not satisfy the claim relation; no proof is produced."""

    def __init__(
        self,
        message: str,
        constraint_label: Optional[str] = None,
        constraint_index: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            error_code="CONSTRAINT_VIOLATION",
            category=ErrorCategory.CIRCUIT,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.constraint_label = constraint_label
        self.constraint_index = constraint_index

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "constraint_label": self.constraint_label,
                "constraint_index": self.constraint_index,
            }
        )
        return data


class RangeViolation(ValidationError):
    """A value exceeds its declared bit-width or is not a field element."""

    def __init__(self, message: str, bit_width: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "RANGE_VIOLATION")
        super().__init__(message, **kwargs)
        self.bit_width = bit_width

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"bit_width": self.bit_width})
        return data


class LedgerError(ZKRemintError):
    """Base class for ledger-side rejections of a claim."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.LEDGER)
        super().__init__(message, **kwargs)


class UnknownRoot(LedgerError):
    """Claim references a root the accumulator never produced."""

    def __init__(self, message: str, root: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="UNKNOWN_ROOT", **kwargs)
        self.root = root


class NullifierAlreadySpent(LedgerError):
    """Nullifier was already recorded as spent."""

    def __init__(self, message: str, nullifier: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="NULLIFIER_USED", **kwargs)
        self.nullifier = nullifier


class ProofRejected(LedgerError):
    """The verifier gateway rejected a proof against the submitted signals."""

    def __init__(self, message: str, status: Optional[str] = None, **kwargs):
        super().__init__(
            message, error_code="PROOF_REJECTED", severity=ErrorSeverity.HIGH, **kwargs
        )
        self.status = status


class InsufficientBalance(LedgerError):
    """Account balance is too low for the requested movement."""

    def __init__(
        self,
        message: str,
        account: Optional[str] = None,
        required: Optional[int] = None,
        available: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="INSUFFICIENT_BALANCE", **kwargs)
        self.account = account
        self.required = required
        self.available = available


# Convenience functions for common error patterns
def create_validation_error(
    field: str, value: Any, expected: Any, message: Optional[str] = None
) -> ValidationError:
    """Create a validation error."""
    if message is None:
        message = f"Invalid value for field '{field}': expected {expected}, got {value}"

    return ValidationError(message=message, field=field, value=value, expected=expected)


def create_range_violation(field: str, value: int, bit_width: int) -> RangeViolation:
    """Create a range violation for a value that does not fit ``bit_width`` bits."""
    return RangeViolation(
        f"Value for '{field}' does not fit in {bit_width} bits",
        field=field,
        value=value,
        expected=f"< 2^{bit_width}",
        bit_width=bit_width,
    )
