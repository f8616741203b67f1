"""
Core proof types and the proof backend interface.

The proof system is an external capability: given input notes, output notes,
the sender, the public delta and the public token owner it produces a proof
object and one authorization signature per input note; given a proof it
reports whether the proof verifies. The ledger core only depends on the
``ProofBackend`` interface defined here.
"""

import json
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..crypto.commitments import Commitment
from ..crypto.hashing import Hash, SHA256Hasher
from ..crypto.signatures import PrivateKey
from ..errors import ConfigurationError
from ..note import Note


class ProofType(Enum):
    """Kinds of proofs the registry accepts."""

    JOIN_SPLIT = "join_split"
    MINT = "mint"


@dataclass
class ProofBackendConfig:
    """Configuration for a proof backend."""

    # Domain separation tag mixed into every proof
    domain: str = "zkasset"

    # Size limits
    max_proof_size: int = 64 * 1024
    max_notes: int = 64

    # Key used to authenticate proofs this backend issues
    verifier_key: bytes = field(default_factory=lambda: secrets.token_bytes(32), repr=False)

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not self.domain:
            raise ConfigurationError("domain must be set", config_key="domain")
        if self.max_proof_size <= 0:
            raise ConfigurationError(
                "max_proof_size must be positive",
                config_key="max_proof_size",
                config_value=self.max_proof_size,
            )
        if self.max_notes <= 0:
            raise ConfigurationError(
                "max_notes must be positive",
                config_key="max_notes",
                config_value=self.max_notes,
            )
        if len(self.verifier_key) < 16:
            raise ConfigurationError(
                "verifier_key must be at least 16 bytes", config_key="verifier_key"
            )


@dataclass(frozen=True)
class NoteSignature:
    """An input note owner's authorization to consume that note."""

    commitment_hash: str
    signer_public_key: bytes
    signature: bytes


@dataclass(frozen=True)
class ProofObject:
    """A proof that a transition balances, bound to that transition's hash."""

    proof_type: ProofType
    asset: str
    transition_hash: str
    input_commitments: Tuple[Commitment, ...]
    output_commitments: Tuple[Commitment, ...]
    public_value_delta: int
    blinding_excess: int
    nonce: bytes
    proof_data: bytes
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.proof_data:
            raise ValueError("proof_data cannot be empty")
        if not self.transition_hash:
            raise ValueError("transition_hash cannot be empty")
        object.__setattr__(self, "input_commitments", tuple(self.input_commitments))
        object.__setattr__(self, "output_commitments", tuple(self.output_commitments))

    def payload(self) -> Dict[str, Any]:
        """Canonical proof fields, excluding ``proof_data``."""
        return {
            "proof_type": self.proof_type.value,
            "asset": self.asset,
            "transition_hash": self.transition_hash,
            "input_commitments": [c.to_hex() for c in self.input_commitments],
            "output_commitments": [c.to_hex() for c in self.output_commitments],
            "public_value_delta": self.public_value_delta,
            "blinding_excess": self.blinding_excess,
            "nonce": self.nonce.hex(),
        }

    def payload_bytes(self) -> bytes:
        return json.dumps(self.payload(), sort_keys=True).encode("utf-8")

    def to_bytes(self) -> bytes:
        """Serialize proof to bytes."""
        data = self.payload()
        data.update(
            {
                "proof_data": self.proof_data.hex(),
                "timestamp": self.timestamp,
                "metadata": self.metadata,
            }
        )
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProofObject":
        """Deserialize proof from bytes."""
        try:
            parsed = json.loads(data.decode("utf-8"))
            return cls(
                proof_type=ProofType(parsed["proof_type"]),
                asset=parsed["asset"],
                transition_hash=parsed["transition_hash"],
                input_commitments=tuple(
                    Commitment.from_bytes(bytes.fromhex(c))
                    for c in parsed["input_commitments"]
                ),
                output_commitments=tuple(
                    Commitment.from_bytes(bytes.fromhex(c))
                    for c in parsed["output_commitments"]
                ),
                public_value_delta=int(parsed["public_value_delta"]),
                blinding_excess=int(parsed["blinding_excess"]),
                nonce=bytes.fromhex(parsed["nonce"]),
                proof_data=bytes.fromhex(parsed["proof_data"]),
                timestamp=parsed["timestamp"],
                metadata=parsed.get("metadata", {}),
            )
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            raise ValueError(f"Invalid proof data: {e}") from e

    def get_hash(self) -> str:
        """Unique hash for this proof."""
        return SHA256Hasher.hash(self.to_bytes()).to_hex()


def signature_digest(asset: str, transition_hash: str, commitment_hash: str) -> Hash:
    """Message an input note owner signs to authorize consuming the note."""
    return SHA256Hasher.hash_fields(
        "ZKASSET:spend", asset, transition_hash, commitment_hash
    )


class ProofBackend(ABC):
    """Abstract base class for proof backends."""

    def __init__(self, config: Optional[ProofBackendConfig] = None):
        self.config = config or ProofBackendConfig()
        self.config.validate()

    @abstractmethod
    def construct_proof(
        self,
        inputs: Sequence[Note],
        outputs: Sequence[Note],
        sender: str,
        public_delta: int,
        public_token_owner: str,
        *,
        asset: str,
        signers: Sequence[PrivateKey] = (),
        proof_type: ProofType = ProofType.JOIN_SPLIT,
    ) -> Tuple[ProofObject, List[NoteSignature]]:
        """Build a proof and one signature per input note.

        Raises:
            ProofConstructionError: if no proof can be produced.
        """

    @abstractmethod
    def verify_proof(self, proof: ProofObject) -> bool:
        """Check the proof's arithmetic and authenticity claims."""
