"""
zkasset: a confidential-asset ledger.

Value moves between a public ERC20-style token and private, shielded notes
while public supply plus private supply stays constant per asset.

This package provides:
- Notes, join-split transitions and homomorphic commitments
- The note registry, allowance gate and conservation checker
- The join-split transaction state machine
- The proof backend and public ledger interfaces
"""

from .allowance import AllowanceGate, AllowanceRecord
from .config import LedgerConfig
from .conservation import ConservationChecker, SupplySnapshot
from .ledger import InMemoryPublicLedger, PublicLedger
from .note import MAX_NOTE_VALUE, Note, NoteCommitment, NoteRecord, NoteState, OutputSpec
from .proofs import (
    CommitmentProofBackend,
    NoteSignature,
    ProofBackend,
    ProofBackendConfig,
    ProofObject,
    ProofType,
)
from .registry import NoteRegistry, RegistryDelta, RegistryInfo
from .transaction import JoinSplitTransaction, StateChange, TransactionState
from .transition import JoinSplitTransition, TransitionKind

__version__ = "0.1.0"

__all__ = [
    "AllowanceGate",
    "AllowanceRecord",
    "LedgerConfig",
    "ConservationChecker",
    "SupplySnapshot",
    "PublicLedger",
    "InMemoryPublicLedger",
    "MAX_NOTE_VALUE",
    "Note",
    "NoteCommitment",
    "NoteRecord",
    "NoteState",
    "OutputSpec",
    "ProofBackend",
    "ProofBackendConfig",
    "ProofObject",
    "ProofType",
    "NoteSignature",
    "CommitmentProofBackend",
    "NoteRegistry",
    "RegistryDelta",
    "RegistryInfo",
    "JoinSplitTransaction",
    "StateChange",
    "TransactionState",
    "JoinSplitTransition",
    "TransitionKind",
]
