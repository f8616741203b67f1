"""
Join-split transaction state machine.

A ``JoinSplitTransaction`` orchestrates one deposit, transfer or redeem::

    BUILDING -> PROOF_REQUESTED -> PROOF_READY -> PUBLIC_APPROVAL_PENDING
             -> SUBMITTED -> APPLIED

Any validation failure moves it to REJECTED and re-raises the error. A
rejected transaction is never retried; the caller builds a new one from
fresh note state. Building, proof construction and the approval check run
outside the registry lock; only ``submit`` is serialized against other
transitions.
"""

import logging

logger = logging.getLogger(__name__)
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import LedgerConfig
from .crypto.signatures import PrivateKey
from .errors import (
    ConservationViolation,
    DoubleSpend,
    InsufficientAllowance,
    ProofConstructionError,
    TransactionStateError,
    ValidationError,
    ZkAssetError,
)
from .note import Note, NoteState, OutputSpec
from .proofs.core import NoteSignature, ProofObject
from .registry import NoteRegistry, RegistryDelta
from .transition import JoinSplitTransition, TransitionKind, local_balance


class TransactionState(Enum):
    """States of a join-split transaction."""

    BUILDING = "building"
    PROOF_REQUESTED = "proof_requested"
    PROOF_READY = "proof_ready"
    PUBLIC_APPROVAL_PENDING = "public_approval_pending"
    SUBMITTED = "submitted"
    APPLIED = "applied"
    REJECTED = "rejected"


TERMINAL_STATES = frozenset({TransactionState.APPLIED, TransactionState.REJECTED})


@dataclass(frozen=True)
class StateChange:
    """One entry of a transaction's state history."""

    state: TransactionState
    timestamp: float = field(default_factory=time.time)
    detail: Optional[str] = None


OutputLike = Union[OutputSpec, Tuple[bytes, int]]


class JoinSplitTransaction:
    """One value transition against a note registry."""

    def __init__(
        self,
        registry: NoteRegistry,
        asset: str,
        input_notes: Sequence[Note],
        output_specs: Iterable[OutputLike],
        public_value_delta: int,
        sender: str,
        public_token_owner: str,
        config: Optional[LedgerConfig] = None,
    ):
        self.registry = registry
        self.config = config or registry.config
        self.asset = asset
        self.input_notes: Tuple[Note, ...] = tuple(input_notes)
        self.output_specs = list(output_specs)
        self.public_value_delta = public_value_delta
        self.sender = sender
        self.public_token_owner = public_token_owner

        self.output_notes: Tuple[Note, ...] = ()
        self.transition: Optional[JoinSplitTransition] = None
        self.proof: Optional[ProofObject] = None
        self.signatures: List[NoteSignature] = []
        self.result: Optional[RegistryDelta] = None
        self.rejection: Optional[ZkAssetError] = None

        self._state = TransactionState.BUILDING
        self._history: List[StateChange] = [StateChange(TransactionState.BUILDING)]
        self._lock = threading.RLock()
        self._cancel_signal: Optional[Future] = None

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def history(self) -> List[StateChange]:
        with self._lock:
            return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def kind(self) -> TransitionKind:
        if self.public_value_delta < 0:
            return TransitionKind.DEPOSIT
        if self.public_value_delta > 0:
            return TransitionKind.REDEEM
        return TransitionKind.TRANSFER

    @property
    def transition_hash(self) -> Optional[str]:
        return self.transition.get_hash().to_hex() if self.transition else None

    # Steps

    def build(self) -> JoinSplitTransition:
        """Validate inputs locally and create the output notes.

        Every check here runs before any external call.

        Raises:
            UnknownAsset: no registry for the asset.
            DoubleSpend: an input note is not unspent in the registry.
            ValidationError: duplicate inputs or too many notes.
            InvalidAmount: a negative or non-integer output value.
            ConservationViolation: inputs minus outputs differ from the delta.
        """
        self._require(TransactionState.BUILDING)
        if self.transition is not None:
            raise TransactionStateError(
                "Transaction is already built", current_state=self._state.value
            )

        try:
            self.transition = self._build()
        except ZkAssetError as e:
            self._reject(e)
        logger.debug(
            "Built %s %s on %s",
            self.kind.value,
            self.transition_hash[:16],
            self.asset,
        )
        return self.transition

    def request_proof(self, signers: Sequence[PrivateKey] = ()) -> ProofObject:
        """Obtain a proof and input-note signatures from the proof backend.

        Construction runs on a worker thread bounded by
        ``config.proof_generation_timeout``; ``cancel`` aborts the wait. A
        proof delivered after a timeout or cancellation is discarded.

        Raises:
            ProofConstructionError: on backend failure, timeout or cancel.
        """
        if self._state == TransactionState.BUILDING and self.transition is None:
            self.build()
        with self._lock:
            self._require(TransactionState.BUILDING)
            self._cancel_signal = Future()
            self._set_state(TransactionState.PROOF_REQUESTED)
            cancel_signal = self._cancel_signal

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zkasset-proof")
        try:
            future = executor.submit(
                self.registry.proof_backend.construct_proof,
                list(self.input_notes),
                list(self.output_notes),
                self.sender,
                self.public_value_delta,
                self.public_token_owner,
                asset=self.asset,
                signers=list(signers),
            )
            timeout = self.config.proof_generation_timeout
            done, _ = wait([future, cancel_signal], timeout=timeout, return_when=FIRST_COMPLETED)

            if cancel_signal in done:
                future.cancel()
                self._reject(ProofConstructionError("Proof request was cancelled"))
            if future not in done:
                future.cancel()
                self._reject(
                    ProofConstructionError(
                        f"Proof construction timed out after {timeout}s"
                    )
                )
            try:
                proof, signatures = future.result()
            except ProofConstructionError as e:
                self._reject(e)
            except Exception as e:
                self._reject(
                    ProofConstructionError(f"Proof backend failed: {e}", cause=e)
                )
        finally:
            executor.shutdown(wait=False)

        with self._lock:
            # cancel() may have won the race after wait() returned
            if cancel_signal.done():
                self._reject(ProofConstructionError("Proof request was cancelled"))
            if self._state != TransactionState.PROOF_REQUESTED:
                raise TransactionStateError(
                    "Proof arrived after the request ended",
                    current_state=self._state.value,
                )
            self.proof = proof
            self.signatures = list(signatures)
            self._set_state(TransactionState.PROOF_READY)
        return proof

    def cancel(self) -> bool:
        """Abort a pending proof request; returns False if none is pending."""
        with self._lock:
            if self._state != TransactionState.PROOF_REQUESTED or self._cancel_signal is None:
                return False
            if not self._cancel_signal.done():
                self._cancel_signal.set_result(True)
            return True

    def request_public_approval(self) -> None:
        """Confirm both allowances cover the public value moved.

        Skipped when the transition moves no public value. A sender other than
        the public token owner also needs the owner's approval of this
        transition hash for ``abs(delta)``.

        Raises:
            InsufficientAllowance: the gate allowance or the transition
                approval does not cover ``abs(delta)``, or the ledger
                allowance does not cover ``abs(delta) * scaling_factor``.
        """
        self._require(TransactionState.PROOF_READY)
        if self.public_value_delta == 0:
            logger.debug("No public value moved, approval skipped")
            return

        self._set_state(TransactionState.PUBLIC_APPROVAL_PENDING)
        try:
            info = self.registry.get_registry(self.asset)
            ledger = self.registry.get_public_ledger(self.asset)
            operator = self.registry.operator
            required = abs(self.public_value_delta)

            gate = self.registry.allowance_gate
            gate.check(self.public_token_owner, operator, required)
            if self.sender != self.public_token_owner:
                gate.check_transition(self.public_token_owner, self.transition_hash, required)

            public_required = required * info.scaling_factor
            available = ledger.allowance(self.public_token_owner, operator)
            if available < public_required:
                raise InsufficientAllowance(
                    f"Ledger allowance of {operator} against "
                    f"{self.public_token_owner} is {available}, "
                    f"{public_required} required",
                    holder=self.public_token_owner,
                    spender=operator,
                    required=public_required,
                    available=available,
                    source="ledger",
                )
        except ZkAssetError as e:
            self._reject(e)

    def submit(self) -> RegistryDelta:
        """Apply the transition to the registry."""
        if self.public_value_delta == 0:
            self._require(TransactionState.PROOF_READY)
        else:
            self._require(TransactionState.PUBLIC_APPROVAL_PENDING)

        self._set_state(TransactionState.SUBMITTED)
        try:
            self.result = self.registry.apply(self.transition, self.proof, self.signatures)
        except ZkAssetError as e:
            self._reject(e)
        self._set_state(TransactionState.APPLIED)
        return self.result

    def execute(self, signers: Sequence[PrivateKey] = ()) -> RegistryDelta:
        """Run every step from building to application."""
        if self.transition is None:
            self.build()
        self.request_proof(signers)
        self.request_public_approval()
        return self.submit()

    # Internals

    def _build(self) -> JoinSplitTransition:
        self.registry.get_registry(self.asset)

        if len(self.input_notes) > self.config.max_input_notes:
            raise ValidationError(
                f"{len(self.input_notes)} input notes exceed the limit of "
                f"{self.config.max_input_notes}",
                field="input_notes",
            )
        if len(self.output_specs) > self.config.max_output_notes:
            raise ValidationError(
                f"{len(self.output_specs)} output notes exceed the limit of "
                f"{self.config.max_output_notes}",
                field="output_specs",
            )
        if isinstance(self.public_value_delta, bool) or not isinstance(
            self.public_value_delta, int
        ):
            raise ValidationError(
                "public_value_delta must be an integer",
                field="public_value_delta",
                value=self.public_value_delta,
            )

        seen = set()
        for note in self.input_notes:
            commitment_hash = note.commitment_hash
            if commitment_hash in seen:
                raise ValidationError(
                    f"Input note {commitment_hash} is listed twice",
                    field="input_notes",
                    value=commitment_hash,
                )
            seen.add(commitment_hash)
            state = self.registry.get_note_state(commitment_hash, asset=self.asset)
            if state != NoteState.UNSPENT:
                raise DoubleSpend(
                    f"Input note {commitment_hash} is {state.value}",
                    asset=self.asset,
                    commitment_hash=commitment_hash,
                )

        specs = []
        for spec in self.output_specs:
            if isinstance(spec, OutputSpec):
                specs.append(spec)
                continue
            try:
                owner_public_key, value = spec
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Output must be an OutputSpec or an (owner, value) pair, got {spec!r}",
                    field="output_specs",
                    value=spec,
                    cause=e,
                ) from e
            specs.append(OutputSpec(owner_public_key, value))

        imbalance = local_balance(
            self.input_notes, [s.value for s in specs], self.public_value_delta
        )
        if imbalance != 0:
            total_in = sum(n.value for n in self.input_notes)
            raise ConservationViolation(
                f"Inputs ({total_in}) minus outputs "
                f"({sum(s.value for s in specs)}) do not equal the public delta "
                f"({self.public_value_delta})",
                expected=total_in,
                actual=total_in - imbalance,
            )

        self.output_notes = tuple(Note.create(s.owner_public_key, s.value) for s in specs)
        return JoinSplitTransition.from_notes(
            self.asset,
            self.input_notes,
            self.output_notes,
            self.public_value_delta,
            self.sender,
            self.public_token_owner,
        )

    def _require(self, expected: TransactionState) -> None:
        if self._state != expected:
            raise TransactionStateError(
                f"Expected state {expected.value}, transaction is {self._state.value}",
                current_state=self._state.value,
            )

    def _set_state(self, state: TransactionState, detail: Optional[str] = None) -> None:
        with self._lock:
            logger.debug("Transaction %s -> %s", self._state.value, state.value)
            self._state = state
            self._history.append(StateChange(state, detail=detail))

    def _reject(self, error: ZkAssetError) -> None:
        with self._lock:
            self.rejection = error
            self._set_state(TransactionState.REJECTED, detail=error.error_code)
        logger.warning("Transaction rejected: %s", error.message)
        raise error
