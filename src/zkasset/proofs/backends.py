"""
Proof backend implementations.

``CommitmentProofBackend`` is a reference backend for development and tests.
It is not zero-knowledge in the range-proof sense: it proves balance through
the commitment algebra (the blinding excess) and authenticates the proofs it
issues with an HMAC under its verifier key. Input-note consumption is
authorized by ECDSA signatures from the note owners.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
import hmac
import secrets
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from ..crypto.commitments import blinding_excess, is_balanced
from ..crypto.signatures import PrivateKey, PublicKey
from ..errors import ProofConstructionError
from ..note import Note
from ..transition import JoinSplitTransition
from .core import (
    NoteSignature,
    ProofBackend,
    ProofObject,
    ProofType,
    signature_digest,
)


class CommitmentProofBackend(ProofBackend):
    """Reference backend based on homomorphic commitments."""

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
        """Build a proof and sign each input note with its owner's key."""
        if len(inputs) + len(outputs) > self.config.max_notes:
            raise ProofConstructionError(
                f"Too many notes for one proof: {len(inputs) + len(outputs)} "
                f"> {self.config.max_notes}"
            )
        if proof_type == ProofType.MINT and inputs:
            raise ProofConstructionError("Mint proofs cannot consume input notes")

        for note in list(inputs) + list(outputs):
            self._parse_owner_key(note)

        keys_by_owner = self._index_signers(signers)

        transition = JoinSplitTransition.from_notes(
            asset, inputs, outputs, public_delta, sender, public_token_owner
        )
        transition_hash = transition.get_hash().to_hex()

        excess = blinding_excess(
            (n.blinding for n in inputs), (n.blinding for n in outputs)
        )
        unsigned = ProofObject(
            proof_type=proof_type,
            asset=asset,
            transition_hash=transition_hash,
            input_commitments=tuple(n.commitment for n in inputs),
            output_commitments=tuple(n.commitment for n in outputs),
            public_value_delta=public_delta,
            blinding_excess=excess,
            nonce=secrets.token_bytes(16),
            proof_data=b"\x00",
            metadata={"backend": "commitment", "domain": self.config.domain},
        )
        proof = replace(unsigned, proof_data=self._tag(unsigned.payload_bytes()))
        if len(proof.to_bytes()) > self.config.max_proof_size:
            raise ProofConstructionError("Proof exceeds max_proof_size")

        signatures = []
        for note in inputs:
            owner = PublicKey.from_bytes(note.owner_public_key).to_bytes()
            private_key = keys_by_owner.get(owner)
            if private_key is None:
                raise ProofConstructionError(
                    f"No signing key for owner of input note {note.commitment_hash}"
                )
            digest = signature_digest(asset, transition_hash, note.commitment_hash)
            signatures.append(
                NoteSignature(
                    commitment_hash=note.commitment_hash,
                    signer_public_key=owner,
                    signature=private_key.sign(digest).to_bytes(),
                )
            )

        logger.debug(
            "Constructed %s proof %s for asset %s (%d inputs, %d outputs)",
            proof_type.value,
            transition_hash[:16],
            asset,
            len(inputs),
            len(outputs),
        )
        return proof, signatures

    def verify_proof(self, proof: ProofObject) -> bool:
        """Check authenticity, size and the commitment balance equation."""
        if len(proof.to_bytes()) > self.config.max_proof_size:
            return False
        if not hmac.compare_digest(proof.proof_data, self._tag(proof.payload_bytes())):
            return False
        if proof.proof_type == ProofType.MINT and proof.input_commitments:
            return False
        return is_balanced(
            proof.input_commitments,
            proof.output_commitments,
            proof.public_value_delta,
            proof.blinding_excess,
        )

    def _tag(self, payload: bytes) -> bytes:
        return hmac.new(self.config.verifier_key, payload, hashlib.sha256).digest()

    @staticmethod
    def _parse_owner_key(note: Note) -> PublicKey:
        try:
            return PublicKey.from_bytes(note.owner_public_key)
        except ValueError as e:
            raise ProofConstructionError(
                f"Malformed owner key on note {note.commitment_hash}: {e}", cause=e
            ) from e

    @staticmethod
    def _index_signers(signers: Sequence[PrivateKey]) -> Dict[bytes, PrivateKey]:
        return {key.get_public_key().to_bytes(): key for key in signers}
