"""
Unit tests for notes and join-split transitions.
"""

import pytest

from zkasset.crypto.signatures import PrivateKey
from zkasset.errors import InvalidAmount, ValidationError
from zkasset.note import (
    MAX_NOTE_VALUE,
    Note,
    NoteCommitment,
    NoteRecord,
    NoteState,
    OutputSpec,
)
from zkasset.transition import JoinSplitTransition, TransitionKind, local_balance


@pytest.fixture
def owner():
    return PrivateKey.generate().get_public_key().to_bytes()


class TestNote:
    """Test the Note class."""

    def test_create_note(self, owner):
        note = Note.create(owner, 5)
        assert note.value == 5
        assert note.owner_public_key == owner
        assert len(note.commitment_hash) == 64

    def test_zero_value_note_allowed(self, owner):
        assert Note.create(owner, 0).value == 0

    def test_negative_value_rejected(self, owner):
        with pytest.raises(InvalidAmount):
            Note.create(owner, -1)

    def test_non_integer_value_rejected(self, owner):
        with pytest.raises(InvalidAmount):
            Note.create(owner, 1.5)
        with pytest.raises(InvalidAmount):
            Note.create(owner, True)

    def test_value_above_maximum_rejected(self, owner):
        Note.create(owner, MAX_NOTE_VALUE)
        with pytest.raises(InvalidAmount):
            Note.create(owner, MAX_NOTE_VALUE + 1)

    def test_empty_owner_rejected(self):
        with pytest.raises(ValidationError):
            Note.create(b"", 5)

    def test_equal_values_have_distinct_hashes(self, owner):
        assert Note.create(owner, 5).commitment_hash != Note.create(owner, 5).commitment_hash

    def test_repr_hides_value_and_blinding(self, owner):
        note = Note(owner, 123456789, 987654321)
        text = repr(note)
        assert "123456789" not in text
        assert "987654321" not in text

    def test_to_public_omits_value(self, owner):
        note = Note.create(owner, 5)
        public = note.to_public()
        assert isinstance(public, NoteCommitment)
        assert public.commitment_hash == note.commitment_hash
        assert not hasattr(public, "value")

    def test_note_commitment_dict_roundtrip(self, owner):
        public = Note.create(owner, 5).to_public()
        assert NoteCommitment.from_dict(public.to_dict()) == public


class TestOutputSpec:
    """Test the OutputSpec class."""

    def test_negative_value_rejected(self, owner):
        with pytest.raises(InvalidAmount):
            OutputSpec(owner, -5)


class TestNoteRecord:
    """Test the NoteRecord class."""

    def test_mark_spent_once(self, owner):
        public = Note.create(owner, 5).to_public()
        record = NoteRecord(public.commitment_hash, owner, public.commitment)
        assert record.state == NoteState.UNSPENT

        record.mark_spent("tx1")
        assert record.is_spent
        assert record.spent_by == "tx1"
        assert record.spent_at is not None

        with pytest.raises(ValueError, match="not unspent"):
            record.mark_spent("tx2")


class TestJoinSplitTransition:
    """Test the JoinSplitTransition class."""

    def test_kind_from_delta_sign(self, owner):
        notes = [Note.create(owner, 5)]
        assert JoinSplitTransition.from_notes("A", [], notes, -5, "s", "o").kind == TransitionKind.DEPOSIT
        assert JoinSplitTransition.from_notes("A", notes, [], 5, "s", "o").kind == TransitionKind.REDEEM
        assert JoinSplitTransition.from_notes("A", notes, notes, 0, "s", "o").kind == TransitionKind.TRANSFER

    def test_hash_binds_every_field(self, owner):
        notes = [Note.create(owner, 5)]
        base = JoinSplitTransition.from_notes("A", [], notes, -5, "s", "o")
        variants = [
            JoinSplitTransition.from_notes("B", [], notes, -5, "s", "o"),
            JoinSplitTransition.from_notes("A", notes, [], -5, "s", "o"),
            JoinSplitTransition.from_notes("A", [], notes, 5, "s", "o"),
            JoinSplitTransition.from_notes("A", [], notes, -5, "t", "o"),
            JoinSplitTransition.from_notes("A", [], notes, -5, "s", "p"),
        ]
        for variant in variants:
            assert variant.get_hash() != base.get_hash()

    def test_hash_is_deterministic(self, owner):
        notes = [Note.create(owner, 5)]
        a = JoinSplitTransition.from_notes("A", [], notes, -5, "s", "o")
        b = JoinSplitTransition.from_notes("A", [], notes, -5, "s", "o")
        assert a.get_hash() == b.get_hash()

    def test_delta_must_be_int(self):
        with pytest.raises(TypeError):
            JoinSplitTransition("A", (), (), 1.0, "s", "o")

    def test_to_dict_has_no_values(self, owner):
        data = JoinSplitTransition.from_notes(
            "A", [], [Note.create(owner, 5)], -5, "s", "o"
        ).to_dict()
        assert "value" not in data["output_notes"][0]
        assert data["public_value_delta"] == -5

    def test_local_balance(self, owner):
        inputs = [Note.create(owner, 6)]
        assert local_balance(inputs, [6], 0) == 0
        assert local_balance(inputs, [], 6) == 0
        assert local_balance(inputs, [5], 0) == 1
        assert local_balance([], [5, 5], -10) == 0
