"""
Proof system interface for zkasset.

This module provides:
- The ``ProofBackend`` interface and proof object types
- A commitment-based reference backend
"""

from .backends import CommitmentProofBackend
from .core import (
    NoteSignature,
    ProofBackend,
    ProofBackendConfig,
    ProofObject,
    ProofType,
    signature_digest,
)

__all__ = [
    "ProofBackend",
    "ProofBackendConfig",
    "ProofObject",
    "ProofType",
    "NoteSignature",
    "CommitmentProofBackend",
    "signature_digest",
]
