"""Exception hierarchy for zkasset.

Every failure raised by the ledger core names the invariant or resource that
was violated, so that a caller can decide whether to rebuild a transition,
top up an allowance, or abandon the operation.
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
    CONFIGURATION = "configuration"
    CONSERVATION = "conservation"
    AUTHORIZATION = "authorization"
    PROOF = "proof"
    REGISTRY = "registry"
    LEDGER = "ledger"
    TRANSACTION = "transaction"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    asset: Optional[str] = None
    transition_hash: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "asset": self.asset,
            "transition_hash": self.transition_hash,
            "metadata": self.metadata,
        }


class ZkAssetError(Exception):
    """Base exception for all zkasset errors."""

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
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ValidationError(ZkAssetError):
    """Malformed caller input."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "VALIDATION")
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class InvalidAmount(ValidationError):
    """Negative, non-integer or out-of-range amount."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "INVALID_AMOUNT")
        super().__init__(message, **kwargs)


class ConfigurationError(ZkAssetError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "CONFIGURATION")
        kwargs.setdefault("category", ErrorCategory.CONFIGURATION)
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
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


class ConservationViolation(ZkAssetError):
    """The balancing equation or supply reconciliation failed.

    Always fatal to the transition and never retried silently.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "CONSERVATION_VIOLATION")
        kwargs.setdefault("category", ErrorCategory.CONSERVATION)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"expected": self.expected, "actual": self.actual})
        return data


class InsufficientAllowance(ZkAssetError):
    """A gate or public-ledger allowance does not cover the public value moved.

    ``source`` is ``"gate"``, ``"transition"`` or ``"ledger"``. The caller may
    top up and retry.
    """

    def __init__(
        self,
        message: str,
        holder: Optional[str] = None,
        spender: Optional[str] = None,
        required: Optional[int] = None,
        available: Optional[int] = None,
        source: str = "gate",
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INSUFFICIENT_ALLOWANCE")
        kwargs.setdefault("category", ErrorCategory.AUTHORIZATION)
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)
        self.holder = holder
        self.spender = spender
        self.required = required
        self.available = available
        self.source = source

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "holder": self.holder,
                "spender": self.spender,
                "required": self.required,
                "available": self.available,
                "source": self.source,
            }
        )
        return data


class LedgerError(ZkAssetError):
    """The public ledger refused or failed a balance change."""

    def __init__(
        self,
        message: str,
        account: Optional[str] = None,
        asset: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "LEDGER_ERROR")
        kwargs.setdefault("category", ErrorCategory.LEDGER)
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)
        self.account = account
        self.asset = asset

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"account": self.account, "asset": self.asset})
        return data


class InsufficientBalance(LedgerError):
    """Public balance too low for a debit."""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INSUFFICIENT_BALANCE")
        super().__init__(message, **kwargs)
        self.required = required
        self.available = available


class ProofConstructionError(ZkAssetError):
    """The proof backend could not produce a proof (may be transient)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "PROOF_CONSTRUCTION")
        kwargs.setdefault("category", ErrorCategory.PROOF)
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


class TransactionStateError(ZkAssetError):
    """A transaction step was invoked out of order."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "TRANSACTION_STATE")
        kwargs.setdefault("category", ErrorCategory.TRANSACTION)
        super().__init__(message, **kwargs)
        self.current_state = current_state


class RegistryError(ZkAssetError):
    """Base class for failures raised by the note registry."""

    def __init__(self, message: str, asset: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "REGISTRY_ERROR")
        kwargs.setdefault("category", ErrorCategory.REGISTRY)
        super().__init__(message, **kwargs)
        self.asset = asset

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"asset": self.asset})
        return data


class UnknownAsset(RegistryError):
    """No note registry exists for the asset."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "UNKNOWN_ASSET")
        super().__init__(message, **kwargs)


class ConversionNotPermitted(RegistryError):
    """The registry does not allow public/private conversion."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "CONVERSION_NOT_PERMITTED")
        super().__init__(message, **kwargs)


class UnauthorizedMint(RegistryError):
    """Mint attempted on a fixed-supply registry or by a non-owner."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "UNAUTHORIZED_MINT")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)


class DoubleSpend(RegistryError):
    """An input note is already spent, unknown, or consumed twice."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "DOUBLE_SPEND")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class DuplicateCommitment(RegistryError):
    """An output commitment hash collides with an existing note."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "DUPLICATE_COMMITMENT")
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class SignatureInvalid(RegistryError):
    """A note-consumption signature is missing or does not verify."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "SIGNATURE_INVALID")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class ProofInvalid(RegistryError):
    """The proof failed independent verification or does not bind the transition."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "PROOF_INVALID")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"reason": self.reason})
        return data


class UnbalancedProof(ProofInvalid, ConservationViolation):
    """The registry's re-derived balancing equation does not hold."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "UNBALANCED_PROOF")
        kwargs.setdefault("category", ErrorCategory.CONSERVATION)
        super().__init__(message, reason="unbalanced", **kwargs)


def require_amount(value: Any, field: str = "amount") -> int:
    """Return ``value`` if it is a non-negative integer, else raise InvalidAmount."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(
            f"{field} must be an integer, got {type(value).__name__}",
            field=field,
            value=value,
            expected="int",
        )
    if value < 0:
        raise InvalidAmount(
            f"{field} must be non-negative, got {value}",
            field=field,
            value=value,
            expected=">= 0",
        )
    return value
