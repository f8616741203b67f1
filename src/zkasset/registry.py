"""
Note registry.

The registry is the authoritative private-value ledger: per asset it records
every note's lifecycle state and the running private supply, and it is the
only component that mutates them. It never accepts or returns a note's
plaintext value. Instead it re-derives the balancing equation from the
commitments it stored when each input note was created, so a transition from
an untrusted submitter is checked without trusting the submitter's own
balance check.

``apply`` and ``mint`` hold the registry lock and the allowance gate lock for
the whole validate-and-commit step. Either every effect of a transition is
committed or none is.
"""

import logging

logger = logging.getLogger(__name__)
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .allowance import AllowanceGate
from .config import LedgerConfig
from .conservation import ConservationChecker, SupplySnapshot
from .crypto.commitments import is_balanced
from .crypto.signatures import PublicKey, Signature
from .errors import (
    ConservationViolation,
    ConversionNotPermitted,
    DoubleSpend,
    DuplicateCommitment,
    ErrorContext,
    InsufficientAllowance,
    InsufficientBalance,
    ProofInvalid,
    RegistryError,
    SignatureInvalid,
    UnauthorizedMint,
    UnbalancedProof,
    UnknownAsset,
    ValidationError,
    ZkAssetError,
)
from .ledger import PublicLedger
from .note import NoteRecord, NoteState
from .proofs.core import NoteSignature, ProofBackend, ProofObject, ProofType, signature_digest
from .transition import JoinSplitTransition, TransitionKind


@dataclass(frozen=True)
class RegistryInfo:
    """Public attributes of one asset's note registry."""

    asset: str
    owner: str
    scaling_factor: int
    can_convert: bool
    can_adjust_supply: bool
    total_private_supply: int
    note_count: int
    spent_count: int
    sequence: int
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "owner": self.owner,
            "scaling_factor": self.scaling_factor,
            "can_convert": self.can_convert,
            "can_adjust_supply": self.can_adjust_supply,
            "total_private_supply": self.total_private_supply,
            "note_count": self.note_count,
            "spent_count": self.spent_count,
            "sequence": self.sequence,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class RegistryDelta:
    """Effects of one applied transition or mint."""

    asset: str
    transition_hash: str
    proof_hash: str
    proof_type: ProofType
    kind: TransitionKind
    spent_notes: Tuple[str, ...]
    created_notes: Tuple[str, ...]
    public_value_delta: int
    public_amount: int
    public_token_owner: str
    private_supply_before: int
    private_supply_after: int
    sequence: int
    applied_at: float = field(default_factory=time.time)

    @property
    def private_supply_change(self) -> int:
        return self.private_supply_after - self.private_supply_before

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "transition_hash": self.transition_hash,
            "proof_hash": self.proof_hash,
            "proof_type": self.proof_type.value,
            "kind": self.kind.value,
            "spent_notes": list(self.spent_notes),
            "created_notes": list(self.created_notes),
            "public_value_delta": self.public_value_delta,
            "public_amount": self.public_amount,
            "public_token_owner": self.public_token_owner,
            "private_supply_before": self.private_supply_before,
            "private_supply_after": self.private_supply_after,
            "sequence": self.sequence,
            "applied_at": self.applied_at,
        }


@dataclass
class _AssetRegistry:
    asset: str
    public_ledger: PublicLedger
    owner: str
    scaling_factor: int
    can_convert: bool
    can_adjust_supply: bool
    notes: Dict[str, NoteRecord] = field(default_factory=dict)
    spent_set: Set[str] = field(default_factory=set)
    total_private_supply: int = 0
    sequence: int = 0
    history: List[RegistryDelta] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)


class NoteRegistry:
    """Authoritative store of note state and private supply per asset."""

    def __init__(
        self,
        proof_backend: ProofBackend,
        config: Optional[LedgerConfig] = None,
        allowance_gate: Optional[AllowanceGate] = None,
        conservation_checker: Optional[ConservationChecker] = None,
    ):
        self.config = config or LedgerConfig()
        self.config.validate()
        self.proof_backend = proof_backend
        self.allowance_gate = allowance_gate or AllowanceGate()
        self.conservation_checker = conservation_checker or ConservationChecker()

        self._registries: Dict[str, _AssetRegistry] = {}
        self._listeners: List[Callable[[RegistryDelta], None]] = []
        self._lock = threading.RLock()

    @property
    def operator(self) -> str:
        return self.config.operator_address

    def create_note_registry(
        self,
        asset: str,
        public_ledger: PublicLedger,
        owner: str,
        scaling_factor: Optional[int] = None,
        can_convert: bool = True,
        can_adjust_supply: bool = False,
    ) -> RegistryInfo:
        """Create the note registry for ``asset`` linked to ``public_ledger``."""
        if not asset:
            raise ValidationError("asset must be set", field="asset")
        if not owner:
            raise ValidationError("owner must be set", field="owner")
        if scaling_factor is None:
            scaling_factor = self.config.default_scaling_factor
        if (
            isinstance(scaling_factor, bool)
            or not isinstance(scaling_factor, int)
            or scaling_factor <= 0
        ):
            raise ValidationError(
                "scaling_factor must be a positive integer",
                field="scaling_factor",
                value=scaling_factor,
                expected="> 0",
            )

        with self._lock:
            if asset in self._registries:
                raise RegistryError(
                    f"Note registry for {asset} already exists",
                    asset=asset,
                    error_code="REGISTRY_EXISTS",
                )
            self._registries[asset] = _AssetRegistry(
                asset=asset,
                public_ledger=public_ledger,
                owner=owner,
                scaling_factor=scaling_factor,
                can_convert=can_convert,
                can_adjust_supply=can_adjust_supply,
            )
            logger.info(
                "Created note registry for %s (owner %s, scaling %d, convert=%s, "
                "adjust_supply=%s)",
                asset,
                owner,
                scaling_factor,
                can_convert,
                can_adjust_supply,
            )
            return self._info(self._registries[asset])

    # Reads

    def get_registry(self, asset: str) -> RegistryInfo:
        with self._lock:
            return self._info(self._get_state(asset))

    def get_public_ledger(self, asset: str) -> PublicLedger:
        with self._lock:
            return self._get_state(asset).public_ledger

    def get_supply(self, asset: str) -> int:
        """Total private supply of ``asset`` in note units."""
        with self._lock:
            return self._get_state(asset).total_private_supply

    def get_note_state(self, commitment_hash: str, asset: Optional[str] = None) -> NoteState:
        """State of a note; searches every asset when ``asset`` is omitted."""
        with self._lock:
            if asset is not None:
                states = [self._get_state(asset)]
            else:
                states = list(self._registries.values())
            for state in states:
                record = state.notes.get(commitment_hash)
                if record is not None:
                    return record.state
            return NoteState.UNKNOWN

    def get_note(self, asset: str, commitment_hash: str) -> Optional[NoteRecord]:
        """Registry record (owner key, commitment, state) of a note."""
        with self._lock:
            record = self._get_state(asset).notes.get(commitment_hash)
            return replace(record) if record is not None else None

    def get_history(self, asset: str) -> List[RegistryDelta]:
        with self._lock:
            return list(self._get_state(asset).history)

    def supply_snapshot(self, asset: str) -> SupplySnapshot:
        """Public and private supply read under the registry lock."""
        with self._lock:
            state = self._get_state(asset)
            return SupplySnapshot(
                asset=asset,
                public_supply=state.public_ledger.total_supply(asset),
                private_supply=state.total_private_supply,
                scaling_factor=state.scaling_factor,
                sequence=state.sequence,
            )

    def add_listener(self, callback: Callable[[RegistryDelta], None]) -> None:
        """Register a callback invoked with every applied ``RegistryDelta``."""
        with self._lock:
            self._listeners.append(callback)

    # Mutations

    def apply(
        self,
        transition: JoinSplitTransition,
        proof: ProofObject,
        signatures: Sequence[NoteSignature] = (),
    ) -> RegistryDelta:
        """Validate and atomically commit a join-split transition.

        Raises:
            UnknownAsset, ConversionNotPermitted, DoubleSpend,
            DuplicateCommitment, ProofInvalid, UnbalancedProof,
            SignatureInvalid, InsufficientAllowance, InsufficientBalance,
            LedgerError, ConservationViolation
        """
        transition_hash = transition.get_hash().to_hex()
        with self._lock, self.allowance_gate.locked():
            try:
                state = self._get_state(transition.asset)
                self._validate_join_split(state, transition, transition_hash, proof, signatures)
                delta = self._commit_join_split(state, transition, transition_hash, proof)
            except ZkAssetError as e:
                self._annotate(e, transition.asset, transition_hash, "apply")
                logger.warning(
                    "Rejected transition %s on %s: %s",
                    transition_hash[:16],
                    transition.asset,
                    e.message,
                )
                raise
            self._notify(delta)
            return delta

    def mint(self, transition: JoinSplitTransition, proof: ProofObject) -> RegistryDelta:
        """Create notes without consuming public value.

        Only the registry owner may mint, and only on registries created with
        ``can_adjust_supply``. The public ledger is untouched; private supply
        grows by ``-public_value_delta``.
        """
        transition_hash = transition.get_hash().to_hex()
        with self._lock:
            try:
                state = self._get_state(transition.asset)
                self._validate_mint(state, transition, transition_hash, proof)
                delta = self._commit_mint(state, transition, transition_hash, proof)
            except ZkAssetError as e:
                self._annotate(e, transition.asset, transition_hash, "mint")
                logger.warning(
                    "Rejected mint %s on %s: %s",
                    transition_hash[:16],
                    transition.asset,
                    e.message,
                )
                raise
            self._notify(delta)
            return delta

    # Validation

    def _validate_join_split(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
        signatures: Sequence[NoteSignature],
    ) -> None:
        asset = state.asset
        delta = transition.public_value_delta

        if delta != 0 and not state.can_convert:
            raise ConversionNotPermitted(
                f"Registry for {asset} does not allow public/private conversion",
                asset=asset,
            )
        if proof.proof_type != ProofType.JOIN_SPLIT:
            raise ProofInvalid(
                f"Expected a join-split proof, got {proof.proof_type.value}",
                asset=asset,
                reason="wrong_type",
            )

        self._check_structure(asset, transition)
        self._check_binding(asset, transition, transition_hash, proof)

        for commitment_hash in transition.input_hashes:
            record = state.notes.get(commitment_hash)
            if record is None:
                raise DoubleSpend(
                    f"Input note {commitment_hash} is unknown to the {asset} registry",
                    asset=asset,
                    commitment_hash=commitment_hash,
                )
            if record.is_spent:
                raise DoubleSpend(
                    f"Input note {commitment_hash} is already spent",
                    asset=asset,
                    commitment_hash=commitment_hash,
                )
        self._check_outputs_new(state, transition)

        stored_inputs = [state.notes[h].commitment for h in transition.input_hashes]
        self._check_balance(state, transition, stored_inputs, proof)
        self._check_backend(asset, proof)
        self._check_signatures(state, transition, transition_hash, signatures)

        if delta != 0:
            self._check_public_value(state, transition, transition_hash)

    def _validate_mint(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
    ) -> None:
        asset = state.asset
        if not state.can_adjust_supply:
            raise UnauthorizedMint(
                f"Registry for {asset} has a fixed supply", asset=asset
            )
        if transition.sender != state.owner:
            raise UnauthorizedMint(
                f"{transition.sender} is not the owner of the {asset} registry",
                asset=asset,
            )
        if proof.proof_type != ProofType.MINT:
            raise ProofInvalid(
                f"Expected a mint proof, got {proof.proof_type.value}",
                asset=asset,
                reason="wrong_type",
            )
        if transition.input_notes:
            raise ProofInvalid(
                "Mint transitions cannot consume input notes",
                asset=asset,
                reason="mint_inputs",
            )
        if transition.public_value_delta > 0:
            raise ProofInvalid(
                "Mint transitions cannot release public value",
                asset=asset,
                reason="mint_delta",
            )

        self._check_structure(asset, transition)
        self._check_binding(asset, transition, transition_hash, proof)
        self._check_outputs_new(state, transition)
        self._check_balance(state, transition, [], proof)
        self._check_backend(asset, proof)

    def _check_structure(self, asset: str, transition: JoinSplitTransition) -> None:
        if len(transition.input_notes) > self.config.max_input_notes:
            raise ValidationError(
                f"Transition has {len(transition.input_notes)} inputs, "
                f"limit is {self.config.max_input_notes}",
                field="input_notes",
            )
        if len(transition.output_notes) > self.config.max_output_notes:
            raise ValidationError(
                f"Transition has {len(transition.output_notes)} outputs, "
                f"limit is {self.config.max_output_notes}",
                field="output_notes",
            )

        seen: Set[str] = set()
        for commitment_hash in transition.input_hashes:
            if commitment_hash in seen:
                raise DoubleSpend(
                    f"Input note {commitment_hash} is consumed twice",
                    asset=asset,
                    commitment_hash=commitment_hash,
                )
            seen.add(commitment_hash)

        outputs: Set[str] = set()
        for commitment_hash in transition.output_hashes:
            if commitment_hash in outputs:
                raise DuplicateCommitment(
                    f"Output note {commitment_hash} appears twice",
                    asset=asset,
                    commitment_hash=commitment_hash,
                )
            outputs.add(commitment_hash)

        overlap = seen & outputs
        if overlap:
            raise ProofInvalid(
                f"Note {sorted(overlap)[0]} is both input and output",
                asset=asset,
                reason="overlap",
            )

    def _check_binding(
        self,
        asset: str,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
    ) -> None:
        if proof.asset != asset:
            raise ProofInvalid(
                f"Proof is for {proof.asset}, transition is for {asset}",
                asset=asset,
                reason="stale",
            )
        if proof.transition_hash != transition_hash:
            raise ProofInvalid(
                "Proof is not bound to this transition",
                asset=asset,
                reason="stale",
            )
        if (
            proof.public_value_delta != transition.public_value_delta
            or proof.input_commitments
            != tuple(n.commitment for n in transition.input_notes)
            or proof.output_commitments
            != tuple(n.commitment for n in transition.output_notes)
        ):
            raise ProofInvalid(
                "Proof commitments do not match the transition",
                asset=asset,
                reason="stale",
            )

    def _check_outputs_new(self, state: _AssetRegistry, transition: JoinSplitTransition) -> None:
        for commitment_hash in transition.output_hashes:
            if commitment_hash in state.notes:
                raise DuplicateCommitment(
                    f"Output note {commitment_hash} already exists in the "
                    f"{state.asset} registry",
                    asset=state.asset,
                    commitment_hash=commitment_hash,
                )

    def _check_balance(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        stored_inputs: list,
        proof: ProofObject,
    ) -> None:
        delta = transition.public_value_delta
        outputs = [n.commitment for n in transition.output_notes]
        if not is_balanced(stored_inputs, outputs, delta, proof.blinding_excess):
            raise UnbalancedProof(
                f"Inputs minus outputs do not equal the public delta {delta}",
                asset=state.asset,
            )
        if state.total_private_supply - delta < 0:
            raise ConservationViolation(
                f"Transition would take the {state.asset} private supply below zero",
                expected=0,
                actual=state.total_private_supply - delta,
            )

    def _check_backend(self, asset: str, proof: ProofObject) -> None:
        if not self.proof_backend.verify_proof(proof):
            raise ProofInvalid(
                "Proof failed backend verification",
                asset=asset,
                reason="verification_failed",
            )

    def _check_signatures(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        signatures: Sequence[NoteSignature],
    ) -> None:
        by_note = {sig.commitment_hash: sig for sig in signatures}
        if len(by_note) != len(signatures) or set(by_note) != set(transition.input_hashes):
            raise SignatureInvalid(
                "Expected exactly one signature per input note",
                asset=state.asset,
            )

        for commitment_hash in transition.input_hashes:
            record = state.notes[commitment_hash]
            sig = by_note[commitment_hash]
            digest = signature_digest(state.asset, transition_hash, commitment_hash)
            try:
                owner = PublicKey.from_bytes(record.owner_public_key)
                signer = PublicKey.from_bytes(sig.signer_public_key)
                signature = Signature.from_bytes(sig.signature, digest.value)
            except ValueError as e:
                raise SignatureInvalid(
                    f"Malformed signature for note {commitment_hash}: {e}",
                    asset=state.asset,
                    commitment_hash=commitment_hash,
                    cause=e,
                ) from e
            if signer != owner:
                raise SignatureInvalid(
                    f"Note {commitment_hash} signed by a key other than its owner",
                    asset=state.asset,
                    commitment_hash=commitment_hash,
                )
            if not owner.verify(signature, digest):
                raise SignatureInvalid(
                    f"Signature for note {commitment_hash} does not verify",
                    asset=state.asset,
                    commitment_hash=commitment_hash,
                )

    def _check_public_value(
        self, state: _AssetRegistry, transition: JoinSplitTransition, transition_hash: str
    ) -> None:
        """Both allowances must cover the public value moved, in either direction.

        A transition whose sender is not the public token owner also needs the
        owner's approval of this transition hash. Only a deposit debits the
        public balance.
        """
        delta = transition.public_value_delta
        holder = transition.public_token_owner
        required = abs(delta)
        self.allowance_gate.check(holder, self.operator, required)
        if transition.sender != holder:
            self.allowance_gate.check_transition(holder, transition_hash, required)

        ledger = state.public_ledger
        amount = required * state.scaling_factor
        if delta < 0:
            balance = ledger.balance_of(holder)
            if balance < amount:
                raise InsufficientBalance(
                    f"Public balance of {holder} is {balance}, {amount} required",
                    account=holder,
                    asset=state.asset,
                    required=amount,
                    available=balance,
                )
        approved = ledger.allowance(holder, self.operator)
        if approved < amount:
            raise InsufficientAllowance(
                f"Ledger allowance of {self.operator} against {holder} is "
                f"{approved}, {amount} required",
                holder=holder,
                spender=self.operator,
                required=amount,
                available=approved,
                source="ledger",
            )

    # Commit

    def _commit_join_split(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
    ) -> RegistryDelta:
        asset = state.asset
        delta = transition.public_value_delta
        public_amount = delta * state.scaling_factor
        ledger = state.public_ledger
        holder = transition.public_token_owner

        pre_public = ledger.total_supply(asset)
        pre_private = state.total_private_supply
        post_private = pre_private - delta

        if delta != 0:
            ledger.apply_delta(holder, asset, public_amount)
        if self.config.enforce_conservation_check:
            try:
                self.conservation_checker.verify(
                    asset,
                    pre_public,
                    pre_private,
                    ledger.total_supply(asset),
                    post_private,
                    delta,
                    scaling_factor=state.scaling_factor,
                )
            except ConservationViolation:
                if delta != 0:
                    ledger.revert_delta(holder, asset, public_amount)
                raise
        if delta != 0:
            self.allowance_gate.authorize(holder, self.operator, abs(delta))
            if transition.sender != holder:
                self.allowance_gate.authorize_transition(holder, transition_hash, abs(delta))

        return self._record(state, transition, transition_hash, proof, post_private)

    def _commit_mint(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
    ) -> RegistryDelta:
        asset = state.asset
        pre_public = state.public_ledger.total_supply(asset)
        pre_private = state.total_private_supply
        post_private = pre_private - transition.public_value_delta
        if self.config.enforce_conservation_check:
            self.conservation_checker.verify_mint(
                asset,
                pre_public,
                pre_private,
                state.public_ledger.total_supply(asset),
                post_private,
                -transition.public_value_delta,
            )
        return self._record(state, transition, transition_hash, proof, post_private)

    def _record(
        self,
        state: _AssetRegistry,
        transition: JoinSplitTransition,
        transition_hash: str,
        proof: ProofObject,
        post_private: int,
    ) -> RegistryDelta:
        for commitment_hash in transition.input_hashes:
            state.notes[commitment_hash].mark_spent(transition_hash)
            state.spent_set.add(commitment_hash)
        for note in transition.output_notes:
            state.notes[note.commitment_hash] = NoteRecord(
                commitment_hash=note.commitment_hash,
                owner_public_key=note.owner_public_key,
                commitment=note.commitment,
                created_by=transition_hash,
            )

        pre_private = state.total_private_supply
        state.total_private_supply = post_private
        state.sequence += 1

        delta = RegistryDelta(
            asset=state.asset,
            transition_hash=transition_hash,
            proof_hash=proof.get_hash(),
            proof_type=proof.proof_type,
            kind=transition.kind,
            spent_notes=transition.input_hashes,
            created_notes=transition.output_hashes,
            public_value_delta=transition.public_value_delta,
            public_amount=transition.public_value_delta * state.scaling_factor
            if proof.proof_type == ProofType.JOIN_SPLIT
            else 0,
            public_token_owner=transition.public_token_owner,
            private_supply_before=pre_private,
            private_supply_after=post_private,
            sequence=state.sequence,
        )
        state.history.append(delta)
        logger.info(
            "Applied %s %s on %s: %d spent, %d created, private supply %d -> %d",
            proof.proof_type.value,
            transition_hash[:16],
            state.asset,
            len(delta.spent_notes),
            len(delta.created_notes),
            pre_private,
            post_private,
        )
        return delta

    # Helpers

    def _get_state(self, asset: str) -> _AssetRegistry:
        state = self._registries.get(asset)
        if state is None:
            raise UnknownAsset(f"No note registry exists for {asset}", asset=asset)
        return state

    def _info(self, state: _AssetRegistry) -> RegistryInfo:
        return RegistryInfo(
            asset=state.asset,
            owner=state.owner,
            scaling_factor=state.scaling_factor,
            can_convert=state.can_convert,
            can_adjust_supply=state.can_adjust_supply,
            total_private_supply=state.total_private_supply,
            note_count=len(state.notes),
            spent_count=len(state.spent_set),
            sequence=state.sequence,
            created_at=state.created_at,
        )

    @staticmethod
    def _annotate(error: ZkAssetError, asset: str, transition_hash: str, operation: str) -> None:
        if error.context.component is None:
            error.context = ErrorContext(
                component="registry",
                operation=operation,
                asset=asset,
                transition_hash=transition_hash,
                metadata=error.context.metadata,
            )

    def _notify(self, delta: RegistryDelta) -> None:
        for listener in list(self._listeners):
            try:
                listener(delta)
            except Exception as e:
                logger.warning("Error in registry listener: %s", e)
