"""
Join-split transitions.

A ``JoinSplitTransition`` is the value-free description of one state change:
which notes are consumed, which are created, and how much public value crosses
the boundary. It is what the registry validates and what a proof is bound to.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence, Tuple

from .crypto.hashing import Hash, SHA256Hasher
from .note import Note, NoteCommitment


class TransitionKind(Enum):
    """Direction of public value movement."""

    DEPOSIT = "deposit"  # public -> private, delta < 0
    TRANSFER = "transfer"  # private only, delta == 0
    REDEEM = "redeem"  # private -> public, delta > 0


@dataclass(frozen=True)
class JoinSplitTransition:
    """Inputs, outputs and public delta of one transition, without note values.

    Balanced when ``sum(inputs) - sum(outputs) == public_value_delta``.
    """

    asset: str
    input_notes: Tuple[NoteCommitment, ...]
    output_notes: Tuple[NoteCommitment, ...]
    public_value_delta: int
    sender: str
    public_token_owner: str

    def __post_init__(self) -> None:
        if isinstance(self.public_value_delta, bool) or not isinstance(
            self.public_value_delta, int
        ):
            raise TypeError("public_value_delta must be an integer")
        object.__setattr__(self, "input_notes", tuple(self.input_notes))
        object.__setattr__(self, "output_notes", tuple(self.output_notes))

    @classmethod
    def from_notes(
        cls,
        asset: str,
        input_notes: Sequence[Note],
        output_notes: Sequence[Note],
        public_value_delta: int,
        sender: str,
        public_token_owner: str,
    ) -> "JoinSplitTransition":
        return cls(
            asset=asset,
            input_notes=tuple(n.to_public() for n in input_notes),
            output_notes=tuple(n.to_public() for n in output_notes),
            public_value_delta=public_value_delta,
            sender=sender,
            public_token_owner=public_token_owner,
        )

    @property
    def kind(self) -> TransitionKind:
        if self.public_value_delta < 0:
            return TransitionKind.DEPOSIT
        if self.public_value_delta > 0:
            return TransitionKind.REDEEM
        return TransitionKind.TRANSFER

    @property
    def input_hashes(self) -> Tuple[str, ...]:
        return tuple(n.commitment_hash for n in self.input_notes)

    @property
    def output_hashes(self) -> Tuple[str, ...]:
        return tuple(n.commitment_hash for n in self.output_notes)

    def get_hash(self) -> Hash:
        """Digest binding every field of the transition."""
        return SHA256Hasher.hash_fields(
            "ZKASSET:join-split",
            self.asset,
            len(self.input_notes),
            *self.input_hashes,
            len(self.output_notes),
            *self.output_hashes,
            self.public_value_delta,
            self.sender,
            self.public_token_owner,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "input_notes": [n.to_dict() for n in self.input_notes],
            "output_notes": [n.to_dict() for n in self.output_notes],
            "public_value_delta": self.public_value_delta,
            "sender": self.sender,
            "public_token_owner": self.public_token_owner,
        }


def local_balance(
    input_notes: Sequence[Note], output_values: Sequence[int], public_value_delta: int
) -> int:
    """``sum(inputs) - sum(outputs) - delta``; zero when the transition balances."""
    return (
        sum(n.value for n in input_notes)
        - sum(output_values)
        - public_value_delta
    )
