"""zkasset error taxonomy."""

from .exceptions import (
    ConfigurationError,
    ConservationViolation,
    ConversionNotPermitted,
    DoubleSpend,
    DuplicateCommitment,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    LedgerError,
    ProofConstructionError,
    ProofInvalid,
    RegistryError,
    SignatureInvalid,
    TransactionStateError,
    UnauthorizedMint,
    UnbalancedProof,
    UnknownAsset,
    ValidationError,
    ZkAssetError,
    require_amount,
)

__all__ = [
    "ZkAssetError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "ValidationError",
    "InvalidAmount",
    "ConfigurationError",
    "ConservationViolation",
    "InsufficientAllowance",
    "LedgerError",
    "InsufficientBalance",
    "ProofConstructionError",
    "TransactionStateError",
    "RegistryError",
    "UnknownAsset",
    "ConversionNotPermitted",
    "UnauthorizedMint",
    "DoubleSpend",
    "DuplicateCommitment",
    "SignatureInvalid",
    "ProofInvalid",
    "UnbalancedProof",
    "require_amount",
]
