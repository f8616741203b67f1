"""
End-to-end deposit, transfer and redeem flows across the registry, the
allowance gate, the public ledger and the conservation checker.
"""

import pytest

from zkasset import (
    CommitmentProofBackend,
    ConservationChecker,
    InMemoryPublicLedger,
    JoinSplitTransaction,
    LedgerConfig,
    NoteRegistry,
    NoteState,
    ProofType,
    TransactionState,
)
from zkasset.errors import (
    ConservationViolation,
    DoubleSpend,
    InsufficientAllowance,
    ProofConstructionError,
)
from zkasset.note import Note
from zkasset.transition import JoinSplitTransition

ASSET = "ZKT"
OPERATOR = "operator"

pytestmark = pytest.mark.integration


class TestScenarios:
    """Deposit, transfer, redeem and violation as one sequence."""

    def test_full_lifecycle(self, registry, ledger, approve, alice_key, alice_pub):
        checker = ConservationChecker()

        # Deposit 10 into two notes of 5
        pre = checker.snapshot(registry, ASSET)
        approve("alice", 10)
        deposit = JoinSplitTransaction(
            registry, ASSET, [], [(alice_pub, 5), (alice_pub, 5)], -10, "alice", "alice"
        )
        deposit.execute()
        checker.verify_snapshots(pre, checker.snapshot(registry, ASSET), -10)

        assert ledger.balance_of("alice") == 90
        assert registry.get_supply(ASSET) == 10
        for note in deposit.output_notes:
            assert registry.get_note_state(note.commitment_hash) == NoteState.UNSPENT

        # Transfer the two notes into 6 and 4
        pre = checker.snapshot(registry, ASSET)
        transfer = JoinSplitTransaction(
            registry,
            ASSET,
            deposit.output_notes,
            [(alice_pub, 6), (alice_pub, 4)],
            0,
            "alice",
            "alice",
        )
        transfer.execute([alice_key])
        checker.verify_snapshots(pre, checker.snapshot(registry, ASSET), 0)

        assert registry.get_supply(ASSET) == 10
        for note in deposit.output_notes:
            assert registry.get_note_state(note.commitment_hash) == NoteState.SPENT
        for note in transfer.output_notes:
            assert registry.get_note_state(note.commitment_hash) == NoteState.UNSPENT

        six, four = transfer.output_notes

        # Redeem the note of 6
        pre = checker.snapshot(registry, ASSET)
        approve("alice", 6)
        redeem = JoinSplitTransaction(registry, ASSET, [six], [], 6, "alice", "alice")
        redeem.execute([alice_key])
        checker.verify_snapshots(pre, checker.snapshot(registry, ASSET), 6)

        assert registry.get_supply(ASSET) == 4
        assert ledger.balance_of("alice") == 96
        assert registry.get_note_state(six.commitment_hash) == NoteState.SPENT
        assert registry.get_note_state(four.commitment_hash) == NoteState.UNSPENT

        # Unbalanced: 4 in, 5 out, no public value; never reaches the registry
        violation = JoinSplitTransaction(
            registry, ASSET, [four], [(alice_pub, 5)], 0, "alice", "alice"
        )
        with pytest.raises(ConservationViolation):
            violation.execute([alice_key])
        assert registry.get_supply(ASSET) == 4

        assert ledger.total_supply(ASSET) + registry.get_supply(ASSET) == 100
        assert checker.violations == 0

    def test_redeem_with_change_tracks_own_outputs(
        self, registry, deposit, approve, alice_key, alice_pub
    ):
        note = deposit([10])[0]
        approve("alice", 3)
        redeem = JoinSplitTransaction(
            registry, ASSET, [note], [(alice_pub, 7)], 3, "alice", "alice"
        )
        delta = redeem.execute([alice_key])

        change = redeem.output_notes[0]
        assert delta.created_notes == (change.commitment_hash,)
        assert registry.get_note_state(change.commitment_hash) == NoteState.UNSPENT
        assert registry.get_supply(ASSET) == 7

    def test_transfer_to_another_owner(self, registry, deposit, alice_key, bob_pub):
        notes = deposit([8])
        JoinSplitTransaction(
            registry, ASSET, notes, [(bob_pub, 8)], 0, "alice", "alice"
        ).execute([alice_key])

        last = registry.get_history(ASSET)[-1]
        assert last.spent_notes == (notes[0].commitment_hash,)
        assert registry.get_note(ASSET, last.created_notes[0]).owner_public_key == bob_pub

    def test_alice_cannot_spend_bobs_note(
        self, registry, deposit, alice_key, bob_key, alice_pub, bob_pub
    ):
        notes = deposit([8])
        transfer = JoinSplitTransaction(
            registry, ASSET, notes, [(bob_pub, 8)], 0, "alice", "alice"
        )
        transfer.execute([alice_key])
        bobs_note = transfer.output_notes[0]

        steal = JoinSplitTransaction(
            registry, ASSET, [bobs_note], [(alice_pub, 8)], 0, "alice", "alice"
        )
        with pytest.raises(ProofConstructionError):
            steal.execute([alice_key])
        assert steal.state == TransactionState.REJECTED
        assert registry.get_note_state(bobs_note.commitment_hash) == NoteState.UNSPENT

        redeem = JoinSplitTransaction(registry, ASSET, [bobs_note], [], 8, "bob", "bob")
        registry.allowance_gate.approve("bob", OPERATOR, 8)
        registry.get_public_ledger(ASSET).approve("bob", OPERATOR, 8)
        redeem.execute([bob_key])
        assert registry.get_public_ledger(ASSET).balance_of("bob") == 8

    def test_allowance_monotonicity(self, registry, ledger, approve, alice_pub):
        approve("alice", 25)
        JoinSplitTransaction(
            registry, ASSET, [], [(alice_pub, 10)], -10, "alice", "alice"
        ).execute()
        assert registry.allowance_gate.allowance("alice", OPERATOR) == 15
        assert ledger.allowance("alice", OPERATOR) == 15

        too_big = JoinSplitTransaction(
            registry, ASSET, [], [(alice_pub, 16)], -16, "alice", "alice"
        )
        with pytest.raises(InsufficientAllowance):
            too_big.execute()
        assert registry.allowance_gate.allowance("alice", OPERATOR) == 15

    def test_resubmitting_rejected_proof_fails_the_same_way(
        self, registry, deposit, alice_key, alice_pub
    ):
        notes = deposit([5])
        spend = JoinSplitTransaction(registry, ASSET, notes, [(alice_pub, 5)], 0, "alice", "alice")
        spend.execute([alice_key])

        for _ in range(2):
            with pytest.raises(DoubleSpend):
                registry.apply(spend.transition, spend.proof, spend.signatures)


class TestScalingFactor:
    """Registries where one note unit is worth several public units."""

    @pytest.fixture
    def scaled(self, backend, config):
        ledger = InMemoryPublicLedger(ASSET, OPERATOR)
        ledger.mint("alice", 1000)
        registry = NoteRegistry(backend, config=config)
        registry.create_note_registry(ASSET, ledger, owner="issuer", scaling_factor=10)
        return registry, ledger

    def test_deposit_and_redeem_are_scaled(self, scaled, alice_key, alice_pub):
        registry, ledger = scaled
        registry.allowance_gate.approve("alice", OPERATOR, 12)
        ledger.approve("alice", OPERATOR, 120)

        deposit = JoinSplitTransaction(
            registry, ASSET, [], [(alice_pub, 12)], -12, "alice", "alice"
        )
        result = deposit.execute()
        assert result.public_amount == -120
        assert ledger.balance_of("alice") == 880
        assert registry.get_supply(ASSET) == 12

        registry.allowance_gate.approve("alice", OPERATOR, 2)
        ledger.approve("alice", OPERATOR, 20)
        redeem = JoinSplitTransaction(
            registry, ASSET, deposit.output_notes, [(alice_pub, 10)], 2, "alice", "alice"
        )
        redeem.execute([alice_key])
        assert ledger.balance_of("alice") == 900
        assert registry.get_supply(ASSET) == 10

    def test_ledger_allowance_must_cover_scaled_amount(self, scaled, alice_pub):
        registry, ledger = scaled
        registry.allowance_gate.approve("alice", OPERATOR, 12)
        ledger.approve("alice", OPERATOR, 12)
        tx = JoinSplitTransaction(registry, ASSET, [], [(alice_pub, 12)], -12, "alice", "alice")
        with pytest.raises(InsufficientAllowance) as exc_info:
            tx.execute()
        assert exc_info.value.required == 120


class TestMint:
    """Authorized mint followed by normal circulation."""

    def test_minted_notes_circulate(self, registry, backend, ledger, approve, alice_key, alice_pub):
        minted = [Note.create(alice_pub, 30)]
        proof, _ = backend.construct_proof(
            [], minted, "issuer", -30, "issuer", asset=ASSET, proof_type=ProofType.MINT
        )
        transition = JoinSplitTransition.from_notes(ASSET, [], minted, -30, "issuer", "issuer")
        registry.mint(transition, proof)
        assert registry.get_supply(ASSET) == 30
        assert ledger.total_supply(ASSET) == 100

        approve("alice", 30)
        JoinSplitTransaction(registry, ASSET, minted, [], 30, "alice", "alice").execute(
            [alice_key]
        )
        assert ledger.balance_of("alice") == 130
        assert ledger.total_supply(ASSET) + registry.get_supply(ASSET) == 130


class TestIsolation:
    """Separate assets do not share notes or supply."""

    def test_two_assets(self, alice_pub):
        backend = CommitmentProofBackend()
        registry = NoteRegistry(backend, config=LedgerConfig(operator_address=OPERATOR))
        for asset in ("AAA", "BBB"):
            ledger = InMemoryPublicLedger(asset, OPERATOR)
            ledger.mint("alice", 50)
            ledger.approve("alice", OPERATOR, 50)
            registry.create_note_registry(asset, ledger, owner="issuer")
            registry.allowance_gate.approve("alice", OPERATOR, 10)

        tx = JoinSplitTransaction(registry, "AAA", [], [(alice_pub, 10)], -10, "alice", "alice")
        tx.execute()

        assert registry.get_supply("AAA") == 10
        assert registry.get_supply("BBB") == 0
        note_hash = tx.output_notes[0].commitment_hash
        assert registry.get_note_state(note_hash, asset="AAA") == NoteState.UNSPENT
        assert registry.get_note_state(note_hash, asset="BBB") == NoteState.UNKNOWN
