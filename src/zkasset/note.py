"""
Notes: single-owner, single-use value commitments.

A ``Note`` is held by the party that created it and knows the plaintext value
and blinding. Everything that crosses into the registry is a
``NoteCommitment``: the owner's public key and the commitment, never the value.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .crypto.commitments import Commitment, commit, random_blinding
from .crypto.hashing import SHA256Hasher
from .errors import InvalidAmount, ValidationError, require_amount

MAX_NOTE_VALUE = 2**64 - 1


class NoteState(Enum):
    """Lifecycle state of a note as seen by the registry."""

    UNSPENT = "unspent"
    SPENT = "spent"
    UNKNOWN = "unknown"


def note_hash(owner_public_key: bytes, commitment: Commitment) -> str:
    """Commitment hash identifying a note within an asset's registry."""
    return SHA256Hasher.hash_fields(
        "ZKASSET:note", commitment.to_bytes(), owner_public_key
    ).to_hex()


@dataclass(frozen=True)
class NoteCommitment:
    """Public face of a note: what the registry stores and the proof binds."""

    owner_public_key: bytes
    commitment: Commitment

    @property
    def commitment_hash(self) -> str:
        return note_hash(self.owner_public_key, self.commitment)

    def to_dict(self):
        return {
            "owner_public_key": self.owner_public_key.hex(),
            "commitment": self.commitment.to_hex(),
        }

    @classmethod
    def from_dict(cls, data) -> "NoteCommitment":
        return cls(
            owner_public_key=bytes.fromhex(data["owner_public_key"]),
            commitment=Commitment.from_bytes(bytes.fromhex(data["commitment"])),
        )


@dataclass(frozen=True)
class Note:
    """A private note known to its creator.

    ``value`` and ``blinding`` are excluded from ``repr`` so notes can be
    logged without disclosing them.
    """

    owner_public_key: bytes
    value: int = field(repr=False)
    blinding: int = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.owner_public_key, (bytes, bytearray)) or not self.owner_public_key:
            raise ValidationError(
                "owner_public_key must be non-empty bytes",
                field="owner_public_key",
                expected="bytes",
            )
        require_amount(self.value, field="value")
        if self.value > MAX_NOTE_VALUE:
            raise InvalidAmount(
                f"value exceeds maximum note value {MAX_NOTE_VALUE}",
                field="value",
                expected=f"<= {MAX_NOTE_VALUE}",
            )

    @classmethod
    def create(cls, owner_public_key: bytes, value: int) -> "Note":
        """Create a fresh note for ``owner_public_key`` with random blinding."""
        return cls(bytes(owner_public_key), value, random_blinding())

    @property
    def commitment(self) -> Commitment:
        return commit(self.value, self.blinding)

    @property
    def commitment_hash(self) -> str:
        return note_hash(self.owner_public_key, self.commitment)

    def to_public(self) -> NoteCommitment:
        return NoteCommitment(self.owner_public_key, self.commitment)


@dataclass(frozen=True)
class OutputSpec:
    """Owner and value of a note to be created by a transition."""

    owner_public_key: bytes
    value: int

    def __post_init__(self) -> None:
        require_amount(self.value, field="value")


@dataclass
class NoteRecord:
    """Registry-side entry for a registered note."""

    commitment_hash: str
    owner_public_key: bytes
    commitment: Commitment
    state: NoteState = NoteState.UNSPENT
    created_by: Optional[str] = None
    spent_by: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    spent_at: Optional[float] = None

    @property
    def is_spent(self) -> bool:
        return self.state == NoteState.SPENT

    def mark_spent(self, transition_hash: str) -> None:
        if self.state != NoteState.UNSPENT:
            raise ValueError(f"Note {self.commitment_hash} is not unspent")
        self.state = NoteState.SPENT
        self.spent_by = transition_hash
        self.spent_at = time.time()
